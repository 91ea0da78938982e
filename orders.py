# orders.py
from flask import current_app
from sqlalchemy import update
from decimal import Decimal
import random
import string
import time

from core import (
    db, Order, OrderItem, Product,
    OrderError, ProductNotFound, InsufficientStock,
)

_BASE36 = string.digits + string.ascii_uppercase


def generate_order_number():
    suffix = "".join(random.choice(_BASE36) for _ in range(5))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def place_order(store_id, items, shipping_address, payment_method,
                billing_address=None, transaction_id=None, total_amount=None):
    """Create an order and decrement stock in a single transaction.

    ``items`` is a list of ``{"productId", "quantity"}`` dicts. Unit prices
    come from the catalog, not from the caller. Raises ``ProductNotFound`` or
    ``InsufficientStock`` after rolling back every write.
    """
    if payment_method == "bkash" and not transaction_id:
        raise OrderError("Transaction ID is required for bKash payments")
    if not items:
        raise OrderError("Your cart is empty.")

    order = Order(
        store_id=store_id,
        order_number=generate_order_number(),
        total_amount=Decimal("0.00"),
        payment_status="PENDING",
        payment_method=payment_method,
        payment_transaction_id=transaction_id if payment_method == "bkash" else None,
        fulfillment_status="PENDING",
        shipping_address=shipping_address,
        billing_address=billing_address or shipping_address,
    )
    try:
        db.session.add(order)
        total = Decimal("0.00")
        for item in items:
            product_id = int(item["productId"])
            quantity = int(item["quantity"])
            product = Product.query.filter_by(id=product_id, store_id=store_id, is_active=True).first()
            if product is None:
                raise ProductNotFound(f"Product with ID {product_id} not found in this store.")
            if product.stock_level < quantity:
                raise InsufficientStock(
                    f"Insufficient stock for product {product.name} (ID: {product_id}). "
                    f"Available: {product.stock_level}, Requested: {quantity}"
                )
            # guarded decrement: a concurrent order may have taken the stock since the read
            result = db.session.execute(
                update(Product)
                .where(Product.id == product_id, Product.store_id == store_id,
                       Product.stock_level >= quantity)
                .values(stock_level=Product.stock_level - quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InsufficientStock(
                    f"Insufficient stock for product {product.name} (ID: {product_id}). "
                    f"Requested: {quantity}"
                )
            unit_price = Decimal(str(product.price))
            order.order_items.append(OrderItem(product_id=product_id, quantity=quantity, price=unit_price))
            total += unit_price * quantity

        order.total_amount = total.quantize(Decimal("0.01"))
        if total_amount is not None and Decimal(str(total_amount)).quantize(Decimal("0.01")) != order.total_amount:
            current_app.logger.warning(
                "Order %s: client total %s differs from catalog total %s",
                order.order_number, total_amount, order.total_amount,
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Order %s placed for store %s (%d items, total %s, %s)",
        order.order_number, store_id, len(order.order_items), order.total_amount, payment_method,
    )
    return order


def get_order(store_id, order_id):
    return Order.query.filter_by(id=order_id, store_id=store_id).first()


def update_order_status(order, payment_status=None, fulfillment_status=None):
    if payment_status:
        order.payment_status = payment_status
    if fulfillment_status:
        order.fulfillment_status = fulfillment_status
    db.session.commit()
    current_app.logger.info(
        "Order %s status now payment=%s fulfillment=%s",
        order.order_number, order.payment_status, order.fulfillment_status,
    )
    return order
