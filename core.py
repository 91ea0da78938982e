# core.py
from flask import Flask, current_app, jsonify, request, render_template
from flask.logging import default_handler
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime, timezone
from decimal import Decimal
from dotenv import load_dotenv
import logging
import click
import os

from cart import load_cart, item_count

# --- DB handle (imported by blueprints) ---
db = SQLAlchemy()

# --- Constants shared across blueprints ---
PAYMENT_STATUSES = ["PENDING", "PAID", "FAILED", "REFUNDED"]
FULFILLMENT_STATUSES = ["PENDING", "PROCESSING", "SHIPPED", "DELIVERED", "CANCELLED"]
PAYMENT_METHODS = ["cod", "bkash"]
LOW_STOCK_THRESHOLD = 10
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# --- Errors ---
class StorefrontError(Exception):
    """Base class for errors the request handlers know how to report."""
    status_code = 500


class StoreNotConfigured(StorefrontError):
    def __init__(self, message="Store ID is not configured"):
        super().__init__(message)


class OrderError(StorefrontError):
    status_code = 400


class ProductNotFound(OrderError):
    status_code = 409


class InsufficientStock(OrderError):
    status_code = 409


class UploadError(StorefrontError):
    status_code = 400


class StorageNotConfigured(UploadError):
    status_code = 500

    def __init__(self, message="Image upload service is not configured. Please contact support."):
        super().__init__(message)


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def money(value):
    return float(Decimal(str(value or 0)).quantize(Decimal("0.01")))


def iso(value):
    return value.isoformat() if value else None


# --- Models ---
class Store(db.Model):
    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class User(db.Model):
    __table_args__ = (db.UniqueConstraint("store_id", "email"),)

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.String(64), db.ForeignKey("store.id"), nullable=False)
    email = db.Column(db.String(200), nullable=False)
    name = db.Column(db.String(120), nullable=True)
    password_hash = db.Column(db.String(256), nullable=True)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    image = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)


class Category(db.Model):
    __table_args__ = (db.UniqueConstraint("store_id", "name"),)

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.String(64), db.ForeignKey("store.id"), nullable=False)
    name = db.Column(db.String(80), nullable=False)

    def to_dict(self):
        return {"id": self.id, "storeId": self.store_id, "name": self.name}


class Product(db.Model):
    __table_args__ = (db.UniqueConstraint("store_id", "sku"),)

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.String(64), db.ForeignKey("store.id"), nullable=False, index=True)
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    stock_level = db.Column(db.Integer, nullable=False, default=0)
    image_urls = db.Column(db.JSON, nullable=False, default=list)
    category_id = db.Column(db.Integer, db.ForeignKey("category.id"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_featured = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    category = db.relationship("Category")

    @property
    def image_url(self):
        return (self.image_urls or [None])[0]

    def is_low_stock(self, threshold=None):
        if threshold is None:
            threshold = current_app.config["LOW_STOCK_THRESHOLD"]
        return self.stock_level < threshold

    def to_dict(self, with_category=False):
        data = {
            "id": self.id,
            "storeId": self.store_id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "price": money(self.price),
            "stockLevel": self.stock_level,
            "imageUrls": list(self.image_urls or []),
            "categoryId": self.category_id,
            "isActive": self.is_active,
            "isFeatured": self.is_featured,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if with_category:
            data["category"] = self.category.to_dict() if self.category else None
        return data


class Order(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.String(64), db.ForeignKey("store.id"), nullable=False, index=True)
    order_number = db.Column(db.String(40), unique=True, nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default="PENDING")
    payment_method = db.Column(db.String(16), nullable=False)
    payment_transaction_id = db.Column(db.String(120), nullable=True)
    fulfillment_status = db.Column(db.String(16), nullable=False, default="PENDING")
    shipping_address = db.Column(db.JSON, nullable=True)
    billing_address = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    order_items = db.relationship(
        "OrderItem", backref="order", lazy="selectin", cascade="all, delete-orphan"
    )

    def to_dict(self, product_fields=("id", "name", "sku", "imageUrls")):
        return {
            "id": self.id,
            "storeId": self.store_id,
            "orderNumber": self.order_number,
            "totalAmount": money(self.total_amount),
            "paymentStatus": self.payment_status,
            "paymentMethod": self.payment_method,
            "paymentTransactionId": self.payment_transaction_id,
            "fulfillmentStatus": self.fulfillment_status,
            "shippingAddress": self.shipping_address,
            "billingAddress": self.billing_address,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
            "orderItems": [it.to_dict(product_fields) for it in self.order_items],
        }


class OrderItem(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("order.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)  # unit price at order time

    product = db.relationship("Product", lazy="joined")

    @property
    def line_total(self):
        return Decimal(str(self.price)) * self.quantity

    def to_dict(self, product_fields=("id", "name", "sku", "imageUrls")):
        data = {
            "id": self.id,
            "orderId": self.order_id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "price": money(self.price),
        }
        if product_fields and self.product is not None:
            full = self.product.to_dict()
            data["product"] = {k: full[k] for k in product_fields}
        return data


# --- Store identifier ---
def get_store_id():
    store_id = current_app.config.get("STORE_ID")
    if not store_id:
        current_app.logger.warning("STORE_ID is not set; tenant data is unavailable.")
        raise StoreNotConfigured()
    return store_id


def get_store_details(store_id):
    if not store_id:
        current_app.logger.warning("get_store_details called without a store id.")
        return None
    try:
        return db.session.get(Store, store_id)
    except SQLAlchemyError:
        current_app.logger.exception("Error fetching store details for ID %s", store_id)
        return None


def _get_or_create_category(store_id, name):
    category = Category.query.filter_by(store_id=store_id, name=name).first()
    if category is None:
        category = Category(store_id=store_id, name=name)
        db.session.add(category)
        db.session.flush()
    return category


def seed_if_empty(store_id):
    """Create the store row and a few demo products on first run."""
    store = db.session.get(Store, store_id)
    if store is None:
        store = Store(id=store_id, name=store_id.replace("-", " ").title())
        db.session.add(store)
        db.session.flush()
    if Product.query.filter_by(store_id=store_id).count() > 0:
        db.session.commit()
        return
    gadgets = _get_or_create_category(store_id, "Gadgets")
    home = _get_or_create_category(store_id, "Home")
    products = [
        {"sku": "GAD-001", "name": "Wireless Earbuds", "price": Decimal("1450.00"), "stock_level": 25, "category_id": gadgets.id, "is_featured": True},
        {"sku": "GAD-002", "name": "Power Bank 10000mAh", "price": Decimal("1200.00"), "stock_level": 8, "category_id": gadgets.id},
        {"sku": "HOM-001", "name": "Ceramic Mug", "price": Decimal("350.00"), "stock_level": 40, "category_id": home.id, "is_featured": True},
        {"sku": "HOM-002", "name": "Desk Lamp", "price": Decimal("990.00"), "stock_level": 3, "category_id": home.id},
    ]
    for p in products:
        db.session.add(Product(store_id=store_id, **p))
    db.session.commit()


# --- Error handlers ---
def _wants_json():
    return request.path.startswith("/api/") or request.accept_mimetypes.best == "application/json"


def register_error_handlers(app):
    @app.errorhandler(StorefrontError)
    def handle_storefront_error(exc):
        app.logger.error("%s: %s", type(exc).__name__, exc)
        if _wants_json():
            return jsonify(message=str(exc)), exc.status_code
        return render_template("error.html", status_code=exc.status_code, message=str(exc)), exc.status_code

    @app.errorhandler(Exception)
    def handle_exception(exc):
        if isinstance(exc, HTTPException):
            if exc.code is None or exc.code < 400:
                return exc
            if _wants_json():
                return jsonify(message=exc.description), exc.code
            return render_template("error.html", status_code=exc.code, message=exc.description), exc.code
        db.session.rollback()
        app.logger.exception("Unhandled error: %s", exc)
        if _wants_json():
            return jsonify(message="Internal Server Error"), 500
        return render_template("error.html", status_code=500, message="Something went wrong."), 500


# --- CLI ---
def register_commands(app):
    @app.cli.command("seed")
    def seed_command():
        """Create the configured store and demo products."""
        seed_if_empty(get_store_id())
        click.echo("Seeded store %s." % get_store_id())

    @app.cli.command("create-admin")
    @click.argument("email")
    @click.argument("password")
    @click.option("--name", default=None)
    def create_admin_command(email, password, name):
        """Create or update an admin user for the configured store."""
        store_id = get_store_id()
        if db.session.get(Store, store_id) is None:
            db.session.add(Store(id=store_id, name=store_id))
        user = User.query.filter_by(store_id=store_id, email=email.strip().lower()).first()
        if user is None:
            user = User(store_id=store_id, email=email.strip().lower())
            db.session.add(user)
        user.name = name or user.name
        user.is_admin = True
        user.set_password(password)
        db.session.commit()
        click.echo("Admin %s ready for store %s." % (user.email, store_id))


def _env_int(name, default):
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def create_app(overrides=None):
    load_dotenv()
    app = Flask(__name__)

    # --- Config ---
    BASE_DIR = os.path.abspath(os.path.dirname(__file__))
    DB_PATH = os.path.join(BASE_DIR, "storefront.db")
    app.config.update(
        SECRET_KEY=os.getenv("FLASK_SECRET_KEY", "dev-secret-change-me"),
        SQLALCHEMY_DATABASE_URI=os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH}"),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        STORE_ID=os.getenv("STORE_ID"),
        SUPABASE_URL=os.getenv("SUPABASE_URL"),
        SUPABASE_ANON_KEY=os.getenv("SUPABASE_ANON_KEY"),
        SUPABASE_BUCKET=os.getenv("SUPABASE_BUCKET", "product-images"),
        LOW_STOCK_THRESHOLD=_env_int("LOW_STOCK_THRESHOLD", LOW_STOCK_THRESHOLD),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        SEED_DEMO_DATA=os.getenv("SEED_DEMO_DATA", "0") == "1",
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
    )
    if overrides:
        app.config.update(overrides)

    # --- Logging ---
    default_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)

    # Register blueprints (import inside to avoid circular imports)
    from shop import shop_bp
    from admin import admin_bp
    from auth import auth_bp, guard_admin_pages
    from api import api_bp
    app.register_blueprint(shop_bp)          # storefront at /
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(api_bp, url_prefix="/api")
    app.before_request(guard_admin_pages)

    register_error_handlers(app)
    register_commands(app)

    @app.context_processor
    def inject_store():
        store_id = app.config.get("STORE_ID")
        return {
            "store": get_store_details(store_id) if store_id else None,
            "cart_count": item_count(load_cart()),
        }

    # Ensure tables exist at startup
    with app.app_context():
        db.create_all()
        if app.config["SEED_DEMO_DATA"] and app.config.get("STORE_ID"):
            seed_if_empty(app.config["STORE_ID"])

    app.logger.info("Storefront ready for store %s", app.config.get("STORE_ID") or "<unset>")
    return app


# Local dev entrypoint
if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
