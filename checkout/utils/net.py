# checkout/utils/net.py
from flask import request

def get_client_ip():
    # honor proxies/load balancers if present
    xff = request.headers.get('X-Forwarded-For', '')
    if xff:
        # first ip in list is original client
        return xff.split(',')[0].strip()
    return request.headers.get('X-Real-IP') or request.remote_addr or "unknown"

def pick_param(key):
    """First non-empty value for ``key`` from query string, form or JSON body."""
    value = request.args.get(key)
    if value:
        return value
    value = request.form.get(key)
    if value:
        return value
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        value = body.get(key)
        if isinstance(value, list):
            value = value[0] if value else None
        if value not in (None, ""):
            return str(value)
    return None
