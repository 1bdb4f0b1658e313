# Overview: Service-layer operations for workflow reconciliation; finds and repairs broken document links.

"""
Reconciliation

Two gaps can exist between workflow documents:
- an order without its placeholder purchase (legacy data, manual SQL)
- a completed purchase without a production run (the spawn after
  completion runs in its own transaction and can fail on its own)

find_workflow_gaps() reports both; repair_workflow_gaps() fills them using
the same idempotent operations the workflow itself uses.
"""

from __future__ import annotations

from .order_service import find_orders_without_purchase
from .production_service import ensure_production_for_order, find_completed_purchases_without_production
from .purchase_service import ensure_purchase_for_order


def find_workflow_gaps() -> dict:
    orders = find_orders_without_purchase()
    purchases = find_completed_purchases_without_production()
    return {
        "orders_without_purchase": [
            {"order_id": o.id, "order_number": o.order_number, "status": o.status} for o in orders
        ],
        "completed_purchases_without_production": [
            {"purchase_id": p.id, "pur_number": p.pur_number, "order_id": p.order_id} for p in purchases
        ],
    }


def repair_workflow_gaps() -> dict:
    """
    Create missing purchases, then missing productions.

    Returns the numbers of the documents created.
    """
    created_purchases = []
    order_ids = [order.id for order in find_orders_without_purchase()]
    for order_id in order_ids:
        purchase, created = ensure_purchase_for_order(order_id)
        if created:
            created_purchases.append(purchase.pur_number)

    created_productions = []
    pending_order_ids = [p.order_id for p in find_completed_purchases_without_production()]
    for order_id in pending_order_ids:
        production, created = ensure_production_for_order(order_id)
        if created:
            created_productions.append(production.production_number)

    return {"purchases": created_purchases, "productions": created_productions}
