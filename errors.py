"""
Domain errors raised by the stores and the order service.

Each error carries the HTTP status the API layer answers with, so the
handlers in main.py only have to copy ``status_code`` and ``detail``.
"""


class ShopError(Exception):
    status_code = 400

    def __init__(self, detail: str = "Request failed"):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(ShopError):
    status_code = 404

    def __init__(self, resource: str = "Resource", resource_id: str = None):
        detail = f"{resource} not found"
        if resource_id:
            detail = f"{resource} not found: {resource_id}"
        super().__init__(detail)
        self.resource = resource
        self.resource_id = resource_id


class ValidationError(ShopError):
    status_code = 400


class OutOfStockError(ValidationError):
    status_code = 400

    def __init__(self, product_name: str, requested: int, available: int):
        super().__init__(f"Insufficient stock for {product_name}: requested {requested}, available {available}")
        self.requested = requested
        self.available = available


class EmptyCartError(ShopError):
    status_code = 400

    def __init__(self, detail: str = "Cart is empty"):
        super().__init__(detail)


class InvalidTransitionError(ShopError):
    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot change order status from {current} to {target}")
        self.current = current
        self.target = target


class DuplicateError(ShopError):
    status_code = 400


class AuthError(ShopError):
    status_code = 401

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(detail)
