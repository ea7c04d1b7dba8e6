"""
Order lifecycle on top of the repositories.

``OrderService.create_from_cart`` is the one operation that writes to
several collections: it stores the order, takes the ordered quantities
out of stock and empties the cart. The three writes run inside
``Store.transaction`` so a failure part way leaves the store as it was.
"""
import logging
from typing import Optional

from database import new_id
from errors import EmptyCartError, NotFoundError, OutOfStockError
from pricing import cart_totals, line_subtotal
from repositories import Repositories
from schemas import Address, Order, OrderItem, Page

logger = logging.getLogger(__name__)


class OrderService:
    def __init__(self, repos: Repositories):
        self.repos = repos
        self.store = repos.store

    def create_from_cart(self, user_id: str, shipping_address: Address, payment_method: Optional[str] = None) -> Order:
        items = self.repos.carts.items(user_id)
        if not items:
            logger.warning("Checkout rejected for user %s, cart is empty", user_id)
            raise EmptyCartError()

        order_id = new_id()
        order_items = []
        for item in items:
            product = self.repos.products.get_by_id(item.product_id)
            if product.stock < item.quantity:
                raise OutOfStockError(product.name, item.quantity, product.stock)
            order_items.append(OrderItem(
                id=new_id(),
                order_id=order_id,
                product_id=item.product_id,
                product_name=product.name,
                quantity=item.quantity,
                price=item.price,
                subtotal=line_subtotal(item.price, item.quantity),
            ))

        totals = cart_totals((it.price, it.quantity) for it in order_items)
        with self.store.transaction():
            order = self.repos.orders.create(Order(
                id=order_id,
                user_id=user_id,
                order_number=self.repos.orders.next_order_number(),
                items=order_items,
                status="pending",
                shipping_address=shipping_address,
                payment_method=payment_method or "credit_card",
                **totals.model_dump(),
            ))
            for it in order_items:
                self.repos.products.adjust_stock(it.product_id, -it.quantity)
            self.repos.carts.clear(user_id)
        return order

    def get_order(self, user_id: str, order_id: str) -> Order:
        order = self.repos.orders.get_by_id(order_id)
        if order.user_id != user_id:
            raise NotFoundError("Order", order_id)
        return order

    def list_orders(self, user_id: str, page: Optional[int] = None, limit: Optional[int] = None) -> Page:
        return self.repos.orders.list_by_user(user_id, page, limit)

    def cancel(self, user_id: str, order_id: str) -> Order:
        order = self.get_order(user_id, order_id)
        with self.store.transaction():
            cancelled = self.repos.orders.cancel(order.id)
            for it in order.items:
                try:
                    self.repos.products.adjust_stock(it.product_id, it.quantity)
                except NotFoundError:
                    logger.info("Product %s no longer exists, stock not restored", it.product_id)
        return cancelled

    def update_status(self, order_id: str, status: str) -> Order:
        if status == "cancelled":
            order = self.repos.orders.get_by_id(order_id)
            return self.cancel(order.user_id, order_id)
        return self.repos.orders.update_status(order_id, status)
