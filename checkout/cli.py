# checkout/cli.py
import click
from .extensions import db
from .errors import InvalidRequest
from .model import User
from .services.coupon_service import create_coupon as _create_coupon

@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--name", required=True)
def create_admin(email, name):
    """Create (or promote) the admin identity that tokens are issued for."""
    email = email.strip().lower()
    u = User.query.filter_by(email=email).first()
    if u:
        u.role = "admin"
    else:
        u = User(email=email, name=name, role="admin")
        db.session.add(u)
    db.session.commit()
    click.echo(f"Admin ready: {u.id} {u.email}")

@click.command("create-coupon")
@click.option("--code", required=True)
@click.option("--type", "ctype", type=click.Choice(["percentage", "fixed"]), required=True)
@click.option("--value", required=True)
@click.option("--min-order", default=None)
@click.option("--max-discount", default=None)
@click.option("--usage-limit-total", default=None)
@click.option("--usage-limit-per-user", default=None)
@click.option("--starts-at", default=None, help="ISO-8601")
@click.option("--expires-at", default=None, help="ISO-8601")
@click.option("--product", "product_ids", multiple=True)
@click.option("--category", "category_ids", multiple=True)
@click.option("--inactive", is_flag=True, default=False)
def create_coupon(code, ctype, value, min_order, max_discount, usage_limit_total,
                  usage_limit_per_user, starts_at, expires_at, product_ids, category_ids, inactive):
    payload = {
        "code": code,
        "type": ctype,
        "value": value,
        "min_order_amount": min_order,
        "max_discount_amount": max_discount,
        "usage_limit_total": usage_limit_total,
        "usage_limit_per_user": usage_limit_per_user,
        "starts_at": starts_at,
        "expires_at": expires_at,
        "apply_to_all": not product_ids and not category_ids,
        "applicable_product_ids": list(product_ids),
        "applicable_category_ids": list(category_ids),
        "is_active": not inactive,
    }
    try:
        c = _create_coupon(payload)
    except InvalidRequest as e:
        raise click.ClickException(e.message)
    click.echo(f"Coupon created: {c.id} {c.code}")

def register_cli(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(create_coupon)
