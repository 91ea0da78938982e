# catalog.py
from flask import current_app
from sqlalchemy import func
from decimal import Decimal

from core import db, Product, Category, Order, OrderItem, StorefrontError

LISTINGS = ("featured", "newArrivals", "bestSellers")
LISTING_TITLES = {
    "featured": "Featured Products",
    "newArrivals": "New Arrivals",
    "bestSellers": "Best Sellers",
}
LISTING_LIMIT = 10


class CatalogError(StorefrontError):
    status_code = 400


class DuplicateSku(CatalogError):
    status_code = 409


class ProductInUse(CatalogError):
    status_code = 409


# --- Storefront queries ---
def active_products(store_id, listing=None):
    query = Product.query.filter_by(store_id=store_id, is_active=True)
    if listing == "featured":
        return query.filter_by(is_featured=True).order_by(Product.created_at.desc(), Product.id.desc()).all()
    if listing == "newArrivals":
        return query.order_by(Product.created_at.desc(), Product.id.desc()).limit(LISTING_LIMIT).all()
    if listing == "bestSellers":
        sold = func.count(OrderItem.id)
        return (
            query.outerjoin(OrderItem, OrderItem.product_id == Product.id)
            .group_by(Product.id)
            .order_by(sold.desc(), Product.created_at.desc())
            .limit(LISTING_LIMIT)
            .all()
        )
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def get_active_product(store_id, product_id):
    return Product.query.filter_by(id=product_id, store_id=store_id, is_active=True).first()


def search_products(store_id, q):
    query = Product.query.filter_by(store_id=store_id)
    if q:
        like = f"%{q.lower()}%"
        query = query.filter(func.lower(Product.name).like(like) | func.lower(Product.sku).like(like))
    return query.order_by(Product.name).all()


# --- Admin queries ---
def store_products(store_id):
    return Product.query.filter_by(store_id=store_id).order_by(Product.created_at.desc(), Product.id.desc()).all()


def store_product(store_id, product_id):
    return Product.query.filter_by(id=product_id, store_id=store_id).first()


def store_categories(store_id):
    return Category.query.filter_by(store_id=store_id).order_by(Category.name).all()


def _check_category(store_id, category_id):
    if category_id is None:
        return
    if Category.query.filter_by(id=category_id, store_id=store_id).first() is None:
        raise CatalogError(f"Category with ID {category_id} not found for this store")


def create_product(store_id, sku, name, price, description=None, stock_level=0,
                   image_urls=None, category_id=None, is_active=True, is_featured=False):
    if Product.query.filter_by(store_id=store_id, sku=sku).first() is not None:
        raise DuplicateSku(f"Product with SKU {sku} already exists for this store")
    _check_category(store_id, category_id)
    product = Product(
        store_id=store_id,
        sku=sku,
        name=name,
        description=description,
        price=Decimal(str(price)),
        stock_level=stock_level,
        image_urls=list(image_urls or []),
        category_id=category_id,
        is_active=is_active,
        is_featured=is_featured,
    )
    db.session.add(product)
    db.session.commit()
    current_app.logger.info("Product %s (%s) created for store %s", product.id, sku, store_id)
    return product


_FIELDS = {
    "name": "name",
    "description": "description",
    "price": "price",
    "stockLevel": "stock_level",
    "imageUrls": "image_urls",
    "categoryId": "category_id",
    "isActive": "is_active",
    "isFeatured": "is_featured",
}


def update_product(product, changes):
    """Apply a partial update given in API field names."""
    if changes.get("categoryId") is not None:
        _check_category(product.store_id, changes["categoryId"])
    for key, value in changes.items():
        attr = _FIELDS.get(key)
        if attr is None:
            continue
        if key == "price":
            value = Decimal(str(value))
        elif key == "imageUrls":
            value = [str(u) for u in value or []]
        setattr(product, attr, value)
    db.session.commit()
    current_app.logger.info("Product %s updated: %s", product.id, ", ".join(sorted(changes)))
    return product


def set_stock_level(product, stock_level):
    if stock_level < 0:
        raise CatalogError("Stock level cannot be negative.")
    product.stock_level = stock_level
    db.session.commit()
    current_app.logger.info("Stock for product %s set to %d", product.id, stock_level)
    return product


def delete_product(product):
    if OrderItem.query.filter_by(product_id=product.id).count() > 0:
        raise ProductInUse("Cannot delete product with existing orders. Consider deactivating it instead.")
    db.session.delete(product)
    db.session.commit()
    current_app.logger.info("Product %s deleted", product.id)


def low_stock_products(store_id, threshold=None):
    if threshold is None:
        threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    return (
        Product.query.filter(
            Product.store_id == store_id,
            Product.stock_level < threshold,
            Product.is_active.is_(True),
        )
        .order_by(Product.stock_level.asc())
        .all()
    )


def dashboard_summary(store_id):
    revenue = (
        db.session.query(func.sum(Order.total_amount))
        .filter(Order.store_id == store_id, Order.payment_status == "PAID")
        .scalar()
    )
    orders = Order.query.filter_by(store_id=store_id)
    return {
        "totalRevenue": float(revenue or 0),
        "totalOrders": orders.count(),
        "pendingFulfillmentOrders": orders.filter_by(fulfillment_status="PENDING").count(),
        "pendingPaymentOrders": orders.filter_by(payment_status="PENDING").count(),
    }


def store_orders(store_id, page=1, limit=10, payment_status=None, fulfillment_status=None):
    """Return one page of orders newest first plus the pagination block."""
    page = max(1, page)
    limit = max(1, limit)
    query = Order.query.filter_by(store_id=store_id)
    if payment_status:
        query = query.filter_by(payment_status=payment_status)
    if fulfillment_status:
        query = query.filter_by(fulfillment_status=fulfillment_status)
    total = query.count()
    orders = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    pagination = {
        "page": page,
        "limit": limit,
        "totalPages": -(-total // limit),
        "totalItems": total,
    }
    return orders, pagination
