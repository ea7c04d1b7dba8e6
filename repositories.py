"""
Repositories over the in-memory store.

Every entity has an abstract store describing the contract callers rely
on and an in-memory implementation working on a ``database.Store``.
Records go in and out as the models from schemas.py; the dicts kept in
the store are never handed out.
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import ValidationError as SchemaError

import auth
from database import Store, is_valid_id, new_id
from errors import (
    AuthError,
    DuplicateError,
    InvalidTransitionError,
    NotFoundError,
    OutOfStockError,
    ValidationError,
)
from pagination import paginate
from pricing import cart_totals, line_subtotal
from schemas import (
    CANCELLABLE_STATUSES,
    STATUS_FLOW,
    TERMINAL_STATUSES,
    CartItem,
    CartLine,
    CartView,
    Order,
    Page,
    Product,
    ProductFilters,
    User,
    utcnow,
)

logger = logging.getLogger(__name__)

SORT_KEYS = {
    "price_asc": (lambda p: p["price"], False),
    "price_desc": (lambda p: p["price"], True),
    "name_asc": (lambda p: p["name"].lower(), False),
    "name_desc": (lambda p: p["name"].lower(), True),
}


def _validated(model, doc: dict):
    try:
        return model.model_validate(doc)
    except SchemaError as e:
        err = e.errors()[0]
        field = ".".join(str(part) for part in err["loc"])
        raise ValidationError(f"Invalid {field}: {err['msg']}") from None


def _check_quantity(quantity) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer")


# Products

class ProductStore(ABC):
    @abstractmethod
    def list(self, filters: Optional[ProductFilters] = None, page: Optional[int] = None, limit: Optional[int] = None) -> Page:
        ...

    @abstractmethod
    def get_by_id(self, product_id: str) -> Product:
        ...

    @abstractmethod
    def get_featured(self) -> List[Product]:
        ...

    @abstractmethod
    def get_categories(self) -> List[str]:
        ...

    @abstractmethod
    def create(self, data: dict) -> Product:
        ...

    @abstractmethod
    def update(self, product_id: str, **changes) -> Product:
        ...

    @abstractmethod
    def delete(self, product_id: str) -> None:
        ...

    @abstractmethod
    def adjust_stock(self, product_id: str, delta: int) -> Product:
        ...


class InMemoryProductStore(ProductStore):
    collection = "product"

    def __init__(self, store: Store):
        self.store = store

    def _doc(self, product_id: str) -> dict:
        doc = self.store.find_one(self.collection, {"id": product_id}) if is_valid_id(product_id) else None
        if doc is None:
            raise NotFoundError("Product", product_id)
        return doc

    def list(self, filters=None, page=None, limit=None):
        filters = filters or ProductFilters()
        docs = self.store.get_documents(self.collection)

        if filters.search:
            needle = filters.search.lower()
            docs = [d for d in docs if needle in d["name"].lower() or needle in (d.get("description") or "").lower()]
        if filters.category:
            docs = [d for d in docs if d["category"] == filters.category]
        if filters.featured:
            docs = [d for d in docs if d.get("featured")]
        if filters.sort:
            if filters.sort not in SORT_KEYS:
                raise ValidationError(f"Unknown sort: {filters.sort}")
            key, reverse = SORT_KEYS[filters.sort]
            docs = sorted(docs, key=key, reverse=reverse)

        result = paginate(docs, page, limit)
        result.data = [Product.model_validate(d) for d in result.data]
        logger.debug("Listed %d of %d products", len(result.data), result.total)
        return result

    def get_by_id(self, product_id):
        return Product.model_validate(self._doc(product_id))

    def get_featured(self):
        return [Product.model_validate(d) for d in self.store.get_documents(self.collection, {"featured": True})]

    def get_categories(self):
        categories = []
        for doc in self.store.get_documents(self.collection):
            if doc["category"] not in categories:
                categories.append(doc["category"])
        return categories

    def create(self, data):
        product = _validated(Product, {**data, "id": new_id()})
        self.store.create_document(self.collection, product.model_dump())
        logger.info("Created product %s (%s)", product.id, product.name)
        return product

    def update(self, product_id, **changes):
        doc = self._doc(product_id)
        changes.pop("id", None)
        changes.pop("created_at", None)
        product = _validated(Product, {**doc, **changes, "updated_at": utcnow()})
        doc.update(product.model_dump())
        return product

    def delete(self, product_id):
        self._doc(product_id)
        self.store.delete_documents(self.collection, {"id": product_id})
        logger.info("Deleted product %s", product_id)

    def adjust_stock(self, product_id, delta):
        doc = self._doc(product_id)
        if doc["stock"] + delta < 0:
            raise OutOfStockError(doc["name"], -delta, doc["stock"])
        return self.update(product_id, stock=doc["stock"] + delta)


# Users

class UserStore(ABC):
    @abstractmethod
    def create(self, email: str, password: str, first_name: str, last_name: str) -> User:
        ...

    @abstractmethod
    def get_by_id(self, user_id: str) -> User:
        ...

    @abstractmethod
    def get_by_email(self, email: str) -> User:
        ...

    @abstractmethod
    def update(self, user_id: str, **changes) -> User:
        ...

    @abstractmethod
    def delete(self, user_id: str) -> None:
        ...

    @abstractmethod
    def authenticate(self, email: str, password: str) -> User:
        ...


class InMemoryUserStore(UserStore):
    collection = "user"

    def __init__(self, store: Store):
        self.store = store

    def _doc(self, user_id: str) -> dict:
        doc = self.store.find_one(self.collection, {"id": user_id}) if is_valid_id(user_id) else None
        if doc is None:
            raise NotFoundError("User", user_id)
        return doc

    def _find_email(self, email: str) -> Optional[dict]:
        email = email.lower()
        for doc in self.store.get_documents(self.collection):
            if doc["email"].lower() == email:
                return doc
        return None

    def create(self, email, password, first_name, last_name):
        if self._find_email(email):
            logger.warning("Registration rejected, email already exists")
            raise DuplicateError("User with this email already exists")
        if not password:
            raise ValidationError("Password is required")
        user = _validated(User, {
            "id": new_id(),
            "email": email.lower(),
            "password_hash": auth.get_password_hash(password),
            "first_name": first_name,
            "last_name": last_name,
        })
        self.store.create_document(self.collection, user.model_dump())
        logger.info("Registered user %s", user.id)
        return user

    def get_by_id(self, user_id):
        return User.model_validate(self._doc(user_id))

    def get_by_email(self, email):
        doc = self._find_email(email)
        if doc is None:
            raise NotFoundError("User")
        return User.model_validate(doc)

    def update(self, user_id, **changes):
        doc = self._doc(user_id)
        if "id" in changes and changes["id"] != user_id:
            raise ValidationError("User id cannot be changed")
        changes.pop("id", None)
        changes.pop("created_at", None)
        if "email" in changes:
            existing = self._find_email(changes["email"])
            if existing is not None and existing["id"] != user_id:
                raise DuplicateError("User with this email already exists")
            changes["email"] = changes["email"].lower()
        if "password" in changes:
            changes["password_hash"] = auth.get_password_hash(changes.pop("password"))
        user = _validated(User, {**doc, **changes, "updated_at": utcnow()})
        doc.update(user.model_dump())
        return user

    def delete(self, user_id):
        self._doc(user_id)
        self.store.delete_documents(self.collection, {"id": user_id})
        logger.info("Deleted user %s", user_id)

    def authenticate(self, email, password):
        doc = self._find_email(email)
        if not doc or not auth.verify_password(password, doc.get("password_hash", "")):
            logger.warning("Failed login attempt")
            raise AuthError("Incorrect email or password")
        return User.model_validate(doc)


# Cart

class CartStore(ABC):
    @abstractmethod
    def items(self, user_id: str) -> List[CartItem]:
        ...

    @abstractmethod
    def add_item(self, user_id: str, product_id: str, quantity: int) -> CartItem:
        ...

    @abstractmethod
    def update_quantity(self, user_id: str, item_id: str, quantity: int) -> CartItem:
        ...

    @abstractmethod
    def remove_item(self, user_id: str, item_id: str) -> None:
        ...

    @abstractmethod
    def clear(self, user_id: str) -> None:
        ...

    @abstractmethod
    def get_cart(self, user_id: str) -> CartView:
        ...


class InMemoryCartStore(CartStore):
    collection = "cartitem"

    def __init__(self, store: Store, products: ProductStore):
        self.store = store
        self.products = products

    def _doc(self, user_id: str, item_id: str) -> dict:
        doc = self.store.find_one(self.collection, {"id": item_id, "user_id": user_id})
        if doc is None:
            raise NotFoundError("Cart item", item_id)
        return doc

    def items(self, user_id):
        return [CartItem.model_validate(d) for d in self.store.get_documents(self.collection, {"user_id": user_id})]

    def add_item(self, user_id, product_id, quantity):
        _check_quantity(quantity)
        product = self.products.get_by_id(product_id)
        if quantity > product.stock:
            logger.warning("Rejected %d x %s for user %s, stock is %d", quantity, product_id, user_id, product.stock)
            raise OutOfStockError(product.name, quantity, product.stock)

        existing = self.store.find_one(self.collection, {"user_id": user_id, "product_id": product_id})
        if existing:
            wanted = existing["quantity"] + quantity
            if wanted > product.stock:
                logger.warning("Clamped %s in cart of %s from %d to stock %d", product_id, user_id, wanted, product.stock)
            existing["quantity"] = min(wanted, product.stock)
            return CartItem.model_validate(existing)

        item = CartItem(
            id=new_id(),
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            price=product.price,
        )
        self.store.create_document(self.collection, item.model_dump())
        logger.debug("Added %d x %s to cart of %s", quantity, product_id, user_id)
        return item

    def update_quantity(self, user_id, item_id, quantity):
        _check_quantity(quantity)
        doc = self._doc(user_id, item_id)
        product = self.products.get_by_id(doc["product_id"])
        if quantity > product.stock:
            raise OutOfStockError(product.name, quantity, product.stock)
        doc["quantity"] = quantity
        return CartItem.model_validate(doc)

    def remove_item(self, user_id, item_id):
        self.store.delete_documents(self.collection, {"id": item_id, "user_id": user_id})

    def clear(self, user_id):
        deleted = self.store.delete_documents(self.collection, {"user_id": user_id})
        if deleted:
            logger.debug("Cleared %d items from cart of %s", deleted, user_id)

    def get_cart(self, user_id):
        lines = []
        for item in self.items(user_id):
            try:
                product = self.products.get_by_id(item.product_id)
            except NotFoundError:
                product = None
            lines.append(CartLine(
                id=item.id,
                product_id=item.product_id,
                quantity=item.quantity,
                price=item.price,
                subtotal=line_subtotal(item.price, item.quantity),
                product=product,
                added_at=item.added_at,
            ))
        totals = cart_totals((line.price, line.quantity) for line in lines)
        return CartView(
            user_id=user_id,
            items=lines,
            total_items=sum(line.quantity for line in lines),
            **totals.model_dump(),
        )


# Orders

class OrderStore(ABC):
    @abstractmethod
    def next_order_number(self) -> str:
        ...

    @abstractmethod
    def create(self, order: Order) -> Order:
        ...

    @abstractmethod
    def get_by_id(self, order_id: str) -> Order:
        ...

    @abstractmethod
    def list_by_user(self, user_id: str, page: Optional[int] = None, limit: Optional[int] = None) -> Page:
        ...

    @abstractmethod
    def list_all(self, page: Optional[int] = None, limit: Optional[int] = None) -> Page:
        ...

    @abstractmethod
    def cancel(self, order_id: str) -> Order:
        ...

    @abstractmethod
    def update_status(self, order_id: str, new_status: str) -> Order:
        ...


class InMemoryOrderStore(OrderStore):
    collection = "order"

    def __init__(self, store: Store):
        self.store = store

    def _doc(self, order_id: str) -> dict:
        doc = self.store.find_one(self.collection, {"id": order_id}) if is_valid_id(order_id) else None
        if doc is None:
            raise NotFoundError("Order", order_id)
        return doc

    def _newest_first(self, docs: List[dict]) -> List[dict]:
        # reversed() first so orders sharing a timestamp stay newest-inserted first
        return sorted(reversed(docs), key=lambda d: d["created_at"], reverse=True)

    def next_order_number(self):
        seq = self.store.next_order_sequence()
        return f"ORD-{utcnow():%Y%m%d}-{seq:06d}"

    def create(self, order):
        if self.store.find_one(self.collection, {"id": order.id}):
            raise DuplicateError(f"Order already exists: {order.id}")
        self.store.create_document(self.collection, order.model_dump())
        logger.info("Created order %s for user %s, total %s", order.order_number, order.user_id, order.total)
        return order

    def get_by_id(self, order_id):
        return Order.model_validate(self._doc(order_id))

    def list_by_user(self, user_id, page=None, limit=None):
        return self._page(self.store.get_documents(self.collection, {"user_id": user_id}), page, limit)

    def list_all(self, page=None, limit=None):
        return self._page(self.store.get_documents(self.collection), page, limit)

    def _page(self, docs: List[dict], page: Optional[int], limit: Optional[int]) -> Page:
        result = paginate(self._newest_first(docs), page, limit)
        result.data = [Order.model_validate(d) for d in result.data]
        return result

    def cancel(self, order_id):
        doc = self._doc(order_id)
        if doc["status"] not in CANCELLABLE_STATUSES:
            logger.warning("Rejected cancel of order %s in status %s", doc["order_number"], doc["status"])
            raise InvalidTransitionError(doc["status"], "cancelled")
        return self._set_status(doc, "cancelled")

    def update_status(self, order_id, new_status):
        if new_status != "cancelled" and new_status not in STATUS_FLOW:
            raise ValidationError(f"Unknown order status: {new_status}")
        doc = self._doc(order_id)
        current = doc["status"]
        if current in TERMINAL_STATUSES:
            raise InvalidTransitionError(current, new_status)
        if new_status == "cancelled":
            return self.cancel(order_id)
        if STATUS_FLOW.index(new_status) <= STATUS_FLOW.index(current):
            raise InvalidTransitionError(current, new_status)
        return self._set_status(doc, new_status)

    def _set_status(self, doc: dict, status: str) -> Order:
        previous = doc["status"]
        doc["status"] = status
        doc["updated_at"] = utcnow()
        logger.info("Order %s moved from %s to %s", doc["order_number"], previous, status)
        return Order.model_validate(doc)


class Repositories:
    """The four stores wired to one ``Store``."""

    def __init__(self, store: Store):
        self.store = store
        self.products = InMemoryProductStore(store)
        self.users = InMemoryUserStore(store)
        self.carts = InMemoryCartStore(store, self.products)
        self.orders = InMemoryOrderStore(store)
