from decimal import Decimal
from typing import Iterable, Tuple

import settings
from schemas import Totals, to_cents

ZERO = Decimal("0.00")


def line_subtotal(price, quantity: int) -> Decimal:
    return to_cents(to_cents(price) * quantity)


def shipping_for(subtotal: Decimal) -> Decimal:
    if subtotal <= 0 or subtotal >= settings.FREE_SHIPPING_THRESHOLD:
        return ZERO
    return to_cents(settings.SHIPPING_FEE)


def cart_totals(lines: Iterable[Tuple[Decimal, int]]) -> Totals:
    """Totals for ``(price, quantity)`` pairs, using the prices as given.

    Callers pass the price snapshots stored on cart items, never the
    live product price. Every part is whole cents, so ``total`` is the
    exact sum of the other three.
    """
    subtotal = sum((line_subtotal(price, quantity) for price, quantity in lines), ZERO)
    tax = to_cents(subtotal * settings.TAX_RATE)
    shipping = shipping_for(subtotal)
    return Totals(subtotal=subtotal, tax=tax, shipping=shipping, total=subtotal + tax + shipping)
