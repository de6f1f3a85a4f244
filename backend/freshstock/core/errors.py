# backend/freshstock/core/errors.py

from typing import Any, Dict, Optional


class InventoryError(Exception):
    """Base class for errors surfaced to the caller of an inventory operation."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message}


class ValidationFailed(InventoryError):
    pass


class NotFound(InventoryError):
    status_code = 404


class OrderLocked(InventoryError):
    pass


class CapacityExceeded(InventoryError):
    """A stock increment would push a product past its max stock level."""

    def __init__(
        self,
        *,
        current_stock: int,
        max_stock_level: int,
        requested_quantity: int,
        action: str = "restock",
        product_name: Optional[str] = None,
    ):
        self.current_stock = current_stock
        self.max_stock_level = max_stock_level
        self.requested_quantity = requested_quantity
        self.max_allowed_quantity = max_stock_level - current_stock
        self.product_name = product_name

        subject = f' Product "{product_name}"' if product_name else ""
        super().__init__(
            f"Cannot {action}.{subject} Adding {requested_quantity} units would exceed the "
            f"maximum stock level of {max_stock_level}. Current stock: {current_stock}, "
            f"Maximum allowed: {max_stock_level}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "current_stock": self.current_stock,
            "max_stock_level": self.max_stock_level,
            "requested_quantity": self.requested_quantity,
            "max_allowed_quantity": self.max_allowed_quantity,
        }


class OrderSizeLimitExceeded(InventoryError):
    def __init__(self, *, product_name: str, requested_quantity: int, max_order_quantity: int):
        self.product_name = product_name
        self.requested_quantity = requested_quantity
        self.max_order_quantity = max_order_quantity
        super().__init__(
            f'Order quantity ({requested_quantity}) exceeds the maximum order limit for "{product_name}". '
            f"Maximum allowed: {max_order_quantity}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "product_name": self.product_name,
            "requested_quantity": self.requested_quantity,
            "max_order_quantity": self.max_order_quantity,
            "error": "ORDER_SIZE_LIMIT_EXCEEDED",
        }
