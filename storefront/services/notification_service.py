# storefront/services/notification_service.py
from decimal import Decimal
from typing import Any, Dict, List

from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def _money(value) -> str:
    return f"₮{Decimal(value):,.0f}"


def order_payload(order: Dict[str, Any], lines: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Plain, JSON-safe payload for the task queue."""
    return {
        "order_id": order["id"],
        "name": order["name"],
        "phone": order["phone"],
        "secondary_phone": order.get("secondary_phone"),
        "address": order["address"],
        "total_price": str(order["total_price"]),
        "created_at": str(order.get("created_at")),
        "lines": [
            {
                "product_name": line.get("product_name"),
                "quantity": line["quantity"],
                "unit_price": str(line["unit_price"]),
                "line_total": str(line["line_total"]),
                "parameters": [f"{p['group']}: {p['name']}" for p in line.get("parameters", [])],
                "special_name": line.get("special_name"),
            }
            for line in lines
        ],
    }


def render_order_email(payload: Dict[str, Any]) -> str:
    rows = []
    for line in payload["lines"]:
        label = line["product_name"] or "(deleted product)"
        if line["parameters"]:
            label += f" [{', '.join(line['parameters'])}]"
        if line.get("special_name"):
            label += f" (special: {line['special_name']})"
        rows.append(
            f"- {label} x{line['quantity']} @ {_money(line['unit_price'])} = {_money(line['line_total'])}"
        )

    phones = payload["phone"]
    if payload.get("secondary_phone"):
        phones += f", {payload['secondary_phone']}"

    return "\n".join(
        [
            f"New order #{payload['order_id']}",
            f"Customer: {payload['name']} ({phones})",
            f"Address: {payload['address']}",
            "",
            *rows,
            "",
            f"Total: {_money(payload['total_price'])}",
        ]
    )


class NotificationService:
    """
    Order notifications.
    Uses Celery so the request never waits on mail delivery.
    """

    def notify_order_created(self, order: Dict[str, Any], lines: List[Dict[str, Any]]):
        send_order_created_email.delay(order_payload(order, lines))


@celery_app.task(name="storefront.services.notification_service.send_order_created_email")
def send_order_created_email(payload: Dict[str, Any]):
    """
    Celery task - renders the admin notification for a new order.
    Delivery itself belongs to the mail gateway; here it is logged.
    """
    body = render_order_email(payload)
    logger.info(f"[NOTIFICATION] Order {payload['order_id']} created\n{body}")

    return {"order_id": payload["order_id"], "status": "sent"}
