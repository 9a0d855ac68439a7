# storefront/domain/order_status.py
from enum import Enum

from storefront.domain.errors import StateConflictError, ValidationError


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: "str | OrderStatus") -> "OrderStatus":
        if isinstance(value, OrderStatus):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValidationError(f"Unknown order status '{value}' (allowed: {allowed})")

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


#forward path; cancelled is added for every non-terminal state below
_FORWARD = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

TRANSITIONS = {
    status: targets | ({OrderStatus.CANCELLED} if not status.is_terminal else set())
    for status, targets in _FORWARD.items()
}


def check_transition(current: OrderStatus, new: OrderStatus, strict: bool) -> None:
    """Raise StateConflictError when `strict` and the move is not in TRANSITIONS.

    Without `strict` every status may move to every other one.
    """
    if not strict or current == new:
        return
    if new not in TRANSITIONS[current]:
        raise StateConflictError(
            f"Order status cannot change from '{current.value}' to '{new.value}'"
        )
