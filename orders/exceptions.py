"""
Domain errors raised by the order fulfillment services.

Views map each class to one HTTP status. QuantityWarning is not
an exception: over-quantity deliveries and receipts are accepted and the
warning is returned alongside the updated order.
"""
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional


class OrderValidationError(Exception):
    """Raised when a draft or transition payload fails validation. Carries every error found."""
    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class NotFoundError(Exception):
    """Raised when an order or reference id does not resolve."""


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class ReferenceNotFoundError(NotFoundError):
    def __init__(self, kind: str, missing_ids):
        self.kind = kind
        self.missing_ids = sorted(missing_ids)
        super().__init__(f"{kind} not found or inactive: {self.missing_ids}")


class InvalidTransitionError(Exception):
    """Raised when an operation is not allowed from the order's current status."""
    def __init__(self, order_id, current_status: str, action: str):
        self.order_id = order_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} order {order_id} in status {current_status}"
        )


class ActionNotPermittedError(Exception):
    """Raised when the acting user may not perform the operation on this order."""


class ScheduleUnavailableError(Exception):
    """Raised when reference or schedule data cannot be read. Safe to retry."""


class WastageConstraintViolation(Exception):
    """
    Raised when wastage plus not-received exceeds the quantity available at
    the checkpoint. ``violations`` lists the over-limit amounts per item;
    nothing is stored when this is raised.
    """
    def __init__(self, level: str, violations: List[Dict]):
        self.level = level
        self.violations = violations
        details = "; ".join(
            f"item {v['order_item_id']}: {v['total']} exceeds {v['limit']}"
            for v in violations
        )
        super().__init__(f"{level.capitalize()} wastage exceeds available quantity: {details}")


@dataclass(frozen=True)
class QuantityWarning:
    """A recorded quantity above the previous stage's quantity. Non-fatal."""
    order_item_id: int
    field: str
    value: int
    limit: int
    basis: str
    product_name: Optional[str] = None

    @property
    def message(self) -> str:
        label = self.product_name or f"item {self.order_item_id}"
        return (
            f"{label}: {self.field.replace('_', ' ')} {self.value} "
            f"exceeds {self.basis.replace('_', ' ')} {self.limit}"
        )

    def as_dict(self) -> Dict:
        data = asdict(self)
        data['message'] = self.message
        return data
