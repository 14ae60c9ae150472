def paymob_payload(order_id, success=True, pending=False, amount_cents=55000, transaction_id=111):
    """A Paymob "transaction processed" callback body."""
    return {
        "type": "TRANSACTION",
        "obj": {
            "id": transaction_id,
            "amount_cents": amount_cents,
            "created_at": "2026-10-19T10:00:00",
            "currency": "EGP",
            "error_occured": False,
            "has_parent_transaction": False,
            "integration_id": 42,
            "is_3d_secure": True,
            "is_auth": False,
            "is_capture": False,
            "is_refunded": False,
            "is_standalone_payment": True,
            "is_voided": False,
            "order": {"id": 9001, "merchant_order_id": order_id},
            "owner": 7,
            "pending": pending,
            "source_data": {"pan": "2346", "sub_type": "MasterCard", "type": "card"},
            "success": success,
        },
    }
