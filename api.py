# api.py
from flask import Blueprint, jsonify, request, current_app
from pydantic import ValidationError
import json

from core import get_store_id, StorefrontError
from schemas import CheckoutRequest, ProductCreate, ProductUpdate, OrderUpdate
from auth import api_admin_required
import catalog
import orders
import uploads

api_bp = Blueprint("api", __name__)


def _validation_errors(exc):
    return json.loads(exc.json(include_url=False))


def parse_body(schema):
    """Validate the JSON body against a pydantic schema.

    Returns ``(model, None)`` or ``(None, response)`` where response is the
    400 to hand back.
    """
    body = request.get_json(silent=True)
    if body is None:
        return None, (jsonify(message="Request body must be JSON"), 400)
    try:
        return schema.model_validate(body), None
    except ValidationError as exc:
        return None, (jsonify(errors=_validation_errors(exc)), 400)


def _flag(name):
    return request.args.get(name) == "true"


# --- Public catalog ---
@api_bp.route("/products")
def products():
    store_id = get_store_id()
    listing = next((name for name in catalog.LISTINGS if _flag(name)), None)
    return jsonify([p.to_dict() for p in catalog.active_products(store_id, listing)])


@api_bp.route("/products/<int:product_id>")
def product_detail(product_id):
    product = catalog.get_active_product(get_store_id(), product_id)
    if product is None:
        return jsonify(error="Product not found"), 404
    return jsonify(product.to_dict())


@api_bp.route("/checkout", methods=["POST"])
def checkout():
    store_id = get_store_id()
    data, error = parse_body(CheckoutRequest)
    if error:
        return error
    if data.paymentMethod == "bkash" and not data.transactionId:
        return jsonify(message="Transaction ID is required for bKash payments"), 400
    try:
        order = orders.place_order(
            store_id,
            [item.model_dump() for item in data.items],
            data.shippingAddress.model_dump(),
            data.paymentMethod,
            billing_address=data.billingAddress.model_dump() if data.billingAddress else None,
            transaction_id=data.transactionId,
            total_amount=data.totalAmount,
        )
    except StorefrontError as exc:
        current_app.logger.warning("Checkout rejected: %s", exc)
        return jsonify(message=str(exc)), exc.status_code
    except Exception:
        current_app.logger.exception("Error creating order")
        return jsonify(message="Failed to create order"), 500
    return jsonify(order.to_dict(product_fields=None)), 201


@api_bp.route("/orders/<int:order_id>")
def order_detail(order_id):
    order = orders.get_order(get_store_id(), order_id)
    if order is None:
        return jsonify(message="Order not found"), 404
    return jsonify(order.to_dict(product_fields=("id", "name", "imageUrls")))


@api_bp.route("/upload", methods=["POST"])
@api_admin_required
def upload():
    try:
        image_url = uploads.upload_image(request.files.get("file"))
    except StorefrontError as exc:
        return jsonify(error=str(exc)), exc.status_code
    return jsonify(imageUrl=image_url), 200


# --- Admin: products ---
@api_bp.route("/admin/products", methods=["GET"])
@api_admin_required
def admin_products():
    return jsonify([p.to_dict() for p in catalog.store_products(get_store_id())])


@api_bp.route("/admin/products", methods=["POST"])
@api_admin_required
def admin_create_product():
    store_id = get_store_id()
    data, error = parse_body(ProductCreate)
    if error:
        return error
    try:
        product = catalog.create_product(
            store_id,
            sku=data.sku,
            name=data.name,
            price=data.price,
            description=data.description,
            stock_level=data.stockLevel,
            image_urls=[str(u) for u in data.imageUrls],
            category_id=data.categoryId,
            is_active=data.isActive,
            is_featured=data.isFeatured,
        )
    except StorefrontError as exc:
        return jsonify(message=str(exc)), exc.status_code
    return jsonify(product.to_dict()), 201


def _store_product_or_404(product_id):
    product = catalog.store_product(get_store_id(), product_id)
    if product is None:
        return None, (jsonify(message="Product not found for this store"), 404)
    return product, None


@api_bp.route("/admin/products/<int:product_id>", methods=["GET"])
@api_admin_required
def admin_product(product_id):
    product, error = _store_product_or_404(product_id)
    if error:
        return error
    return jsonify(product.to_dict(with_category=True))


@api_bp.route("/admin/products/<int:product_id>", methods=["PUT"])
@api_admin_required
def admin_update_product(product_id):
    product, error = _store_product_or_404(product_id)
    if error:
        return error
    data, error = parse_body(ProductUpdate)
    if error:
        return error
    try:
        catalog.update_product(product, data.model_dump(exclude_unset=True))
    except StorefrontError as exc:
        return jsonify(message=str(exc)), exc.status_code
    return jsonify(product.to_dict())


@api_bp.route("/admin/products/<int:product_id>", methods=["DELETE"])
@api_admin_required
def admin_delete_product(product_id):
    product, error = _store_product_or_404(product_id)
    if error:
        return error
    try:
        catalog.delete_product(product)
    except StorefrontError as exc:
        return jsonify(message=str(exc)), exc.status_code
    return jsonify(message="Product deleted successfully"), 200


# --- Admin: orders ---
def _int_arg(name, default):
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


@api_bp.route("/admin/orders")
@api_admin_required
def admin_orders():
    page_orders, pagination = catalog.store_orders(
        get_store_id(),
        page=_int_arg("page", 1),
        limit=_int_arg("limit", 10),
        payment_status=request.args.get("paymentStatus") or None,
        fulfillment_status=request.args.get("fulfillmentStatus") or None,
    )
    return jsonify(
        data=[o.to_dict(product_fields=("name", "sku")) for o in page_orders],
        pagination=pagination,
    )


@api_bp.route("/admin/orders/<int:order_id>", methods=["GET"])
@api_admin_required
def admin_order(order_id):
    order = orders.get_order(get_store_id(), order_id)
    if order is None:
        return jsonify(message="Order not found"), 404
    return jsonify(order.to_dict(product_fields=("name", "sku", "imageUrls")))


@api_bp.route("/admin/orders/<int:order_id>", methods=["PUT"])
@api_admin_required
def admin_update_order(order_id):
    data, error = parse_body(OrderUpdate)
    if error:
        return error
    order = orders.get_order(get_store_id(), order_id)
    if order is None:
        return jsonify(message="Order not found"), 404
    orders.update_order_status(order, data.paymentStatus, data.fulfillmentStatus)
    return jsonify(order.to_dict(product_fields=("name", "sku")))


# --- Admin: dashboard ---
@api_bp.route("/admin/dashboard/summary")
@api_admin_required
def dashboard_summary():
    return jsonify(catalog.dashboard_summary(get_store_id()))


@api_bp.route("/admin/dashboard/low-stock")
@api_admin_required
def dashboard_low_stock():
    return jsonify([
        {
            "id": p.id,
            "name": p.name,
            "sku": p.sku,
            "stockLevel": p.stock_level,
            "imageUrls": list(p.image_urls or []),
            "imageUrl": p.image_url,
        }
        for p in catalog.low_stock_products(get_store_id())
    ])
