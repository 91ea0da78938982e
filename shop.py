# shop.py
from flask import Blueprint, render_template, redirect, url_for, request, flash, abort, current_app
from pydantic import ValidationError

from core import get_store_id, StorefrontError, PAYMENT_METHODS
from schemas import CheckoutRequest
import cart as cart_state
import catalog
import orders

shop_bp = Blueprint("shop", __name__)

ADDRESS_FIELDS = ("street", "city", "state", "zipCode", "country")


# --- Helpers (storefront-specific) ---
def _address_from_form(prefix):
    return {field: request.form.get(f"{prefix}_{field}", "").strip() for field in ADDRESS_FIELDS}


def _qty(value, default=1):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _checkout_error_messages(exc):
    messages = []
    for err in exc.errors():
        where = ".".join(str(part) for part in err["loc"])
        messages.append(f"{where}: {err['msg']}")
    return messages


# --- Routes: Storefront ---
@shop_bp.route("/")
def index():
    store_id = get_store_id()
    return render_template(
        "index.html",
        featured=catalog.active_products(store_id, "featured"),
        new_arrivals=catalog.active_products(store_id, "newArrivals"),
        best_sellers=catalog.active_products(store_id, "bestSellers"),
    )


@shop_bp.route("/products")
def products():
    listing = request.args.get("filter")
    if listing not in catalog.LISTINGS:
        listing = None
    items = catalog.active_products(get_store_id(), listing)
    title = catalog.LISTING_TITLES.get(listing, "All Products")
    return render_template("products.html", products=items, title=title, listing=listing)


@shop_bp.route("/products/<int:product_id>")
def product_detail(product_id):
    product = catalog.get_active_product(get_store_id(), product_id)
    if product is None:
        abort(404)
    return render_template("product.html", product=product)


@shop_bp.route("/cart/add/<int:product_id>", methods=["POST"])
def add_to_cart(product_id):
    product = catalog.get_active_product(get_store_id(), product_id)
    if product is None:
        flash("Product not found.", "error")
        return redirect(url_for("shop.products"))
    if product.stock_level <= 0:
        flash(f"'{product.name}' is out of stock.", "error")
        return redirect(url_for("shop.product_detail", product_id=product_id))
    quantity = max(1, _qty(request.form.get("quantity"), 1))
    cart_state.save_cart(cart_state.add_item(cart_state.load_cart(), product, quantity))
    flash(f"Added '{product.name}' to cart.", "success")
    return redirect(request.referrer or url_for("shop.cart_view"))


@shop_bp.route("/cart", methods=["GET", "POST"])
def cart_view():
    if request.method == "POST":
        items = cart_state.load_cart()
        for key, val in request.form.items():
            if not key.startswith("qty-"):
                continue
            product_id = _qty(key.replace("qty-", "", 1), None)
            if product_id is None:
                continue
            items = cart_state.update_item_quantity(items, product_id, _qty(val, 0))
        cart_state.save_cart(items)
        flash("Cart updated.", "success")
        return redirect(url_for("shop.cart_view"))

    items = cart_state.load_cart()
    return render_template(
        "cart.html",
        items=items,
        item_count=cart_state.item_count(items),
        total=cart_state.cart_total(items),
    )


@shop_bp.route("/cart/remove/<int:product_id>", methods=["POST"])
def remove(product_id):
    cart_state.save_cart(cart_state.remove_item(cart_state.load_cart(), product_id))
    flash("Item removed.", "success")
    return redirect(url_for("shop.cart_view"))


@shop_bp.route("/cart/clear", methods=["POST"])
def clear():
    cart_state.save_cart(cart_state.clear_cart(cart_state.load_cart()))
    flash("Cart cleared.", "success")
    return redirect(url_for("shop.cart_view"))


@shop_bp.route("/checkout", methods=["GET", "POST"])
def checkout():
    items = cart_state.load_cart()
    if not items:
        flash("Your cart is empty.", "error")
        return redirect(url_for("shop.products"))
    total = cart_state.cart_total(items)

    if request.method == "POST":
        billing_same = request.form.get("billing_same") == "on"
        payload = {
            "items": [{"productId": it["id"], "quantity": it["quantity"], "price": float(it["price"])} for it in items],
            "totalAmount": float(total),
            "shippingAddress": _address_from_form("shipping"),
            "billingAddress": None if billing_same else _address_from_form("billing"),
            "paymentMethod": request.form.get("payment_method", ""),
            "transactionId": request.form.get("transaction_id") or None,
        }
        try:
            data = CheckoutRequest.model_validate(payload)
        except ValidationError as exc:
            for message in _checkout_error_messages(exc):
                flash(message, "error")
            return render_template("checkout.html", items=items, total=total, form=request.form,
                                   payment_methods=PAYMENT_METHODS), 400
        if data.paymentMethod == "bkash" and not data.transactionId:
            flash("Transaction ID is required for bKash payment.", "error")
            return render_template("checkout.html", items=items, total=total, form=request.form,
                                   payment_methods=PAYMENT_METHODS), 400
        try:
            order = orders.place_order(
                get_store_id(),
                [item.model_dump() for item in data.items],
                data.shippingAddress.model_dump(),
                data.paymentMethod,
                billing_address=data.billingAddress.model_dump() if data.billingAddress else None,
                transaction_id=data.transactionId,
                total_amount=data.totalAmount,
            )
        except StorefrontError as exc:
            current_app.logger.warning("Checkout rejected: %s", exc)
            flash(str(exc), "error")
            return render_template("checkout.html", items=items, total=total, form=request.form,
                                   payment_methods=PAYMENT_METHODS), exc.status_code
        cart_state.save_cart(cart_state.clear_cart(items))
        return redirect(url_for("shop.order_confirmation", order_id=order.id))

    return render_template("checkout.html", items=items, total=total, form={}, payment_methods=PAYMENT_METHODS)


@shop_bp.route("/order-confirmation/<int:order_id>")
def order_confirmation(order_id):
    order = orders.get_order(get_store_id(), order_id)
    if order is None:
        flash("Order not found.", "error")
        return redirect(url_for("shop.index"))
    return render_template("order_confirmation.html", order=order)
