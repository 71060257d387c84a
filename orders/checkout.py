"""Checkout engine.

Turns a user's active cart lines (or a single product, for direct checkout)
into an immutable order snapshot:

1. lock and read the cart lines
2. batch-load product prices
3. compute subtotal / discount
4. resolve the address and its state's delivery fee
5. persist order + items + initial status history, then clear the cart

Every entry point runs inside one ``transaction.atomic()`` block so a failure
at any step leaves no partial order behind.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction
from rest_framework.exceptions import NotFound, ValidationError

from accounts.models import Address
from cart.models import CartItem
from core.exceptions import BusinessRuleError, Conflict
from core.money import ZERO, to_money as _money
from products.models import Product
from .models import Order, OrderItem, OrderStatusHistory

logger = logging.getLogger(__name__)

CART_CHECKOUT_NOTE = 'Initial order creation'
DIRECT_CHECKOUT_NOTE = 'Direct checkout'


@dataclass
class CheckoutLine:
    """Product + quantity + variant, the shape shared by cart and direct checkout."""

    product_id: int
    quantity: int
    size: str | None = None
    color: str | None = None


@dataclass
class CheckoutTotals:
    subtotal: Decimal
    discount: Decimal
    delivery_fee: Decimal = ZERO

    @property
    def total_price(self) -> Decimal:
        return _money(self.subtotal + self.delivery_fee)


def load_active_cart_items(user) -> list[CartItem]:
    """Lock and return the user's non-deleted cart lines.

    Size and color are part of a line's identity; two lines for the same
    product with different variants stay separate.
    """
    return list(
        CartItem.objects.select_for_update()
        .filter(user=user)
        .order_by('id')
    )


def resolve_prices(product_ids) -> dict[int, tuple[Decimal, Decimal]]:
    """Map product id -> ``(price, old_price)`` in one query.

    ``old_price`` falls back to ``price`` so products without a strike-through
    price contribute no discount.
    """
    prices = {}
    rows = Product.all_objects.filter(id__in=set(product_ids)).values_list('id', 'price', 'old_price')
    for product_id, price, old_price in rows:
        price = _money(price)
        prices[product_id] = (price, _money(old_price) if old_price is not None else price)
    return prices


def resolve_delivery_fee(user, address_id) -> tuple[Address, Decimal]:
    """Return the user's address and the delivery fee of its state (0 without one)."""
    if address_id in (None, ''):
        raise NotFound('Address not found')
    try:
        address = Address.objects.select_related('state', 'user').get(id=address_id, user=user)
    except (Address.DoesNotExist, ValueError, TypeError):
        raise NotFound('Address not found')
    return address, _money(address.delivery_fee)


def compute_totals(lines, prices) -> CheckoutTotals:
    """Sum ``price * qty`` and ``(old_price - price) * qty`` over the lines.

    Lines whose product has no price contribute 0.
    """
    subtotal = ZERO
    discount = ZERO
    for line in lines:
        price, old_price = prices.get(line.product_id, (ZERO, ZERO))
        qty = Decimal(int(line.quantity))
        subtotal += price * qty
        discount += (old_price - price) * qty
    return CheckoutTotals(subtotal=_money(subtotal), discount=_money(discount))


def generate_order_code() -> str:
    length = max(4, min(int(settings.ORDER_CODE_LENGTH), 32))
    return f"{settings.ORDER_CODE_PREFIX}-{uuid.uuid4().hex[:length].upper()}"


def _create_order_row(**fields) -> Order:
    # the unique constraint on order_code is the source of truth; retry on collision
    attempts = max(1, int(settings.ORDER_CODE_MAX_ATTEMPTS))
    for attempt in range(1, attempts + 1):
        code = generate_order_code()
        try:
            with transaction.atomic():
                return Order.objects.create(order_code=code, **fields)
        except IntegrityError:
            logger.warning('Order code collision on %s (attempt %d/%d)', code, attempt, attempts)
    raise Conflict('Could not allocate a unique order code. Please retry.')


def assemble_order(*, user, address, lines, prices, totals, note, user_note='', actor='') -> Order:
    """Persist the order, its items and the initial ``pending`` history row."""
    order = _create_order_row(
        user=user,
        address=address,
        status='pending',
        note=note,
        user_note=user_note or '',
        subtotal=totals.subtotal,
        discount_amount=totals.discount,
        delivery_fee=totals.delivery_fee,
        total_price=totals.total_price,
        created_by=actor,
        updated_by=actor,
    )

    OrderItem.objects.bulk_create([
        OrderItem(
            order=order,
            product_id=line.product_id,
            quantity=int(line.quantity),
            price=prices.get(line.product_id, (ZERO, ZERO))[0],
            size=line.size,
            color=line.color,
        )
        for line in lines
    ])

    OrderStatusHistory.objects.create(
        order=order,
        status='pending',
        changed_by=actor,
        note=order.note,
    )
    return order


def checkout_cart(user, address_id, note='', actor='') -> tuple[Order, CheckoutTotals]:
    """Convert every active cart line of ``user`` into one order and clear the cart."""
    with transaction.atomic():
        cart_items = load_active_cart_items(user)
        if not cart_items:
            raise BusinessRuleError('Cart is empty')

        lines = [
            CheckoutLine(product_id=ci.product_id, quantity=ci.quantity, size=ci.size, color=ci.color)
            for ci in cart_items
        ]
        prices = resolve_prices(line.product_id for line in lines)
        totals = compute_totals(lines, prices)
        address, totals.delivery_fee = resolve_delivery_fee(user, address_id)

        order = assemble_order(
            user=user,
            address=address,
            lines=lines,
            prices=prices,
            totals=totals,
            note=CART_CHECKOUT_NOTE,
            user_note=note,
            actor=actor,
        )

        CartItem.all_objects.filter(id__in=[ci.id for ci in cart_items]).delete()

    logger.info(
        'Order %s created for user %s from cart: %d lines, subtotal=%s discount=%s delivery_fee=%s total=%s',
        order.order_code, user.pk, len(lines), totals.subtotal, totals.discount, totals.delivery_fee, totals.total_price,
    )
    return order, totals


def direct_checkout(user, product_id, address_id, quantity=1, size=None, color=None, note='', actor='') -> tuple[Order, CheckoutTotals]:
    """Create a single-line order for one product without touching the cart."""
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError({'quantity': ['Quantity must be a whole number.']})
    if quantity < 1:
        raise ValidationError({'quantity': ['Quantity must be at least 1.']})

    with transaction.atomic():
        product = Product.objects.filter(id=product_id).first() if product_id not in (None, '') else None
        if product is None:
            raise NotFound('Product not found')

        lines = [CheckoutLine(product_id=product.id, quantity=quantity, size=size, color=color)]
        prices = resolve_prices([product.id])
        totals = compute_totals(lines, prices)
        address, totals.delivery_fee = resolve_delivery_fee(user, address_id)

        order = assemble_order(
            user=user,
            address=address,
            lines=lines,
            prices=prices,
            totals=totals,
            note=DIRECT_CHECKOUT_NOTE,
            user_note=note,
            actor=actor,
        )

    logger.info(
        'Order %s created for user %s by direct checkout: product=%s qty=%d total=%s',
        order.order_code, user.pk, product.id, quantity, totals.total_price,
    )
    return order, totals
