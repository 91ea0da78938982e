# admin.py
from flask import Blueprint, render_template, redirect, url_for, request, flash, abort, current_app
from pydantic import ValidationError

from core import get_store_id, StorefrontError, PAYMENT_STATUSES, FULFILLMENT_STATUSES
from schemas import ProductCreate, ProductUpdate, OrderUpdate
from auth import is_store_admin
import catalog
import orders
import uploads

admin_bp = Blueprint("admin", __name__)


@admin_bp.before_request
def require_admin():
    if is_store_admin():
        return None
    flash("You need an admin account for this store.", "error")
    return redirect(url_for("auth.signin", next=request.full_path))


def _product_form():
    """Collect the product form into API field names."""
    urls = [u.strip() for u in request.form.get("image_urls", "").splitlines() if u.strip()]
    category = request.form.get("category_id", "").strip()
    return {
        "sku": request.form.get("sku", "").strip(),
        "name": request.form.get("name", "").strip(),
        "description": request.form.get("description", "").strip() or None,
        "price": request.form.get("price", "").strip(),
        "stockLevel": request.form.get("stock_level", "0").strip() or "0",
        "imageUrls": urls,
        "categoryId": int(category) if category.isdigit() else None,
        "isActive": request.form.get("is_active") == "on",
        "isFeatured": request.form.get("is_featured") == "on",
    }


def _flash_validation(exc):
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"])
        flash(f"{field}: {err['msg']}", "error")


def _validate_with_image(schema, fields):
    """Validate the form, then upload any attached image and prepend its URL."""
    data = schema.model_validate(fields)
    image = request.files.get("image")
    if image is None or not image.filename:
        return data
    url = uploads.upload_image(image)
    return schema.model_validate(dict(fields, imageUrls=[url] + fields["imageUrls"]))


def _store_product_or_404(product_id):
    product = catalog.store_product(get_store_id(), product_id)
    if product is None:
        abort(404)
    return product


@admin_bp.route("/")
@admin_bp.route("/dashboard")
def dashboard():
    store_id = get_store_id()
    return render_template(
        "admin/dashboard.html",
        summary=catalog.dashboard_summary(store_id),
        low_stock=catalog.low_stock_products(store_id),
    )


# --- Products ---
@admin_bp.route("/products")
def products():
    return render_template("admin/products.html", products=catalog.store_products(get_store_id()))


@admin_bp.route("/products/new", methods=["GET", "POST"])
def product_new():
    store_id = get_store_id()
    categories = catalog.store_categories(store_id)
    if request.method == "POST":
        fields = _product_form()
        try:
            data = _validate_with_image(ProductCreate, fields)
            catalog.create_product(
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
        except ValidationError as exc:
            _flash_validation(exc)
            return render_template("admin/product_form.html", product=None, form=fields, categories=categories), 400
        except StorefrontError as exc:
            flash(str(exc), "error")
            return render_template("admin/product_form.html", product=None, form=fields, categories=categories), exc.status_code
        flash("Product created.", "success")
        return redirect(url_for("admin.products"))
    return render_template("admin/product_form.html", product=None, form={}, categories=categories)


@admin_bp.route("/products/<int:product_id>/edit", methods=["GET", "POST"])
def product_edit(product_id):
    product = _store_product_or_404(product_id)
    categories = catalog.store_categories(product.store_id)
    if request.method == "POST":
        fields = _product_form()
        fields.pop("sku")
        try:
            data = _validate_with_image(ProductUpdate, fields)
            catalog.update_product(product, data.model_dump())
        except ValidationError as exc:
            _flash_validation(exc)
            return render_template("admin/product_form.html", product=product, form=fields, categories=categories), 400
        except StorefrontError as exc:
            flash(str(exc), "error")
            return render_template("admin/product_form.html", product=product, form=fields, categories=categories), exc.status_code
        flash("Product updated.", "success")
        return redirect(url_for("admin.products"))
    return render_template("admin/product_form.html", product=product, form={}, categories=categories)


@admin_bp.route("/products/<int:product_id>/toggle/<flag>", methods=["POST"])
def product_toggle(product_id, flag):
    product = _store_product_or_404(product_id)
    if flag == "active":
        catalog.update_product(product, {"isActive": not product.is_active})
    elif flag == "featured":
        catalog.update_product(product, {"isFeatured": not product.is_featured})
    else:
        abort(404)
    flash(f"'{product.name}' updated.", "success")
    return redirect(url_for("admin.products"))


@admin_bp.route("/products/<int:product_id>/delete", methods=["POST"])
def product_delete(product_id):
    product = _store_product_or_404(product_id)
    try:
        catalog.delete_product(product)
    except StorefrontError as exc:
        flash(str(exc), "error")
        return redirect(url_for("admin.products"))
    flash("Product deleted.", "success")
    return redirect(url_for("admin.products"))


# --- Inventory ---
@admin_bp.route("/inventory", methods=["GET", "POST"])
def inventory():
    store_id = get_store_id()
    if request.method == "POST":
        product = _store_product_or_404(int(request.form.get("product_id", "0") or 0))
        try:
            stock_level = int(request.form.get("stock_level", ""))
            catalog.set_stock_level(product, stock_level)
        except ValueError:
            flash("Stock level must be a whole number.", "error")
        except StorefrontError as exc:
            flash(str(exc), "error")
        else:
            flash(f"Stock level for '{product.name}' updated.", "success")
        return redirect(url_for("admin.inventory", q=request.args.get("q", "")))

    q = request.args.get("q", "").strip()
    return render_template(
        "admin/inventory.html",
        products=catalog.search_products(store_id, q),
        q=q,
        threshold=current_app.config["LOW_STOCK_THRESHOLD"],
    )


# --- Orders ---
@admin_bp.route("/orders")
def order_list():
    try:
        page = int(request.args.get("page", 1))
    except ValueError:
        page = 1
    payment_status = request.args.get("paymentStatus") or None
    fulfillment_status = request.args.get("fulfillmentStatus") or None
    page_orders, pagination = catalog.store_orders(
        get_store_id(),
        page=page,
        limit=20,
        payment_status=payment_status,
        fulfillment_status=fulfillment_status,
    )
    return render_template(
        "admin/orders.html",
        orders=page_orders,
        pagination=pagination,
        payment_status=payment_status,
        fulfillment_status=fulfillment_status,
        payment_statuses=PAYMENT_STATUSES,
        fulfillment_statuses=FULFILLMENT_STATUSES,
    )


@admin_bp.route("/orders/<int:order_id>", methods=["GET", "POST"])
def order_detail(order_id):
    order = orders.get_order(get_store_id(), order_id)
    if order is None:
        abort(404)
    if request.method == "POST":
        try:
            data = OrderUpdate.model_validate({
                "paymentStatus": request.form.get("payment_status") or None,
                "fulfillmentStatus": request.form.get("fulfillment_status") or None,
            })
        except ValidationError as exc:
            _flash_validation(exc)
            return redirect(url_for("admin.order_detail", order_id=order.id))
        if not data.paymentStatus and not data.fulfillmentStatus:
            flash("No status change selected.", "info")
        else:
            orders.update_order_status(order, data.paymentStatus, data.fulfillmentStatus)
            flash("Order status updated.", "success")
        return redirect(url_for("admin.order_detail", order_id=order.id))
    return render_template(
        "admin/order_detail.html",
        order=order,
        payment_statuses=PAYMENT_STATUSES,
        fulfillment_statuses=FULFILLMENT_STATUSES,
    )
