from decimal import Decimal

import pytest

from core import create_app, db, Store, User, Category, Product

STORE_ID = "test-store"


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test",
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "STORE_ID": STORE_ID,
        "SUPABASE_URL": None,
        "SUPABASE_ANON_KEY": None,
        "SEED_DEMO_DATA": False,
        "LOW_STOCK_THRESHOLD": 10,
    })
    with app.app_context():
        db.session.add_all([
            Store(id=STORE_ID, name="Test Store"),
            Store(id="other-store", name="Other Store"),
        ])
        admin = User(store_id=STORE_ID, email="admin@example.com", name="Admin", is_admin=True)
        admin.set_password("secret")
        staff = User(store_id=STORE_ID, email="staff@example.com", name="Staff", is_admin=False)
        staff.set_password("secret")
        db.session.add_all([admin, staff])
        db.session.add(Category(store_id=STORE_ID, name="Gadgets"))
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(app):
    client = app.test_client()
    with app.app_context():
        admin = User.query.filter_by(email="admin@example.com").one()
        admin_id = admin.id
    with client.session_transaction() as sess:
        sess["user_id"] = admin_id
        sess["user_email"] = "admin@example.com"
        sess["is_admin"] = True
        sess["store_id"] = STORE_ID
    return client


@pytest.fixture
def make_product(app):
    def _make(sku, name=None, price="100.00", stock_level=20, store_id=STORE_ID, **kwargs):
        product = Product(
            store_id=store_id,
            sku=sku,
            name=name or sku,
            price=Decimal(price),
            stock_level=stock_level,
            **kwargs
        )
        db.session.add(product)
        db.session.commit()
        return product.id
    return _make


@pytest.fixture
def address():
    return {
        "street": "12 Lake Road",
        "city": "Dhaka",
        "state": "Dhaka",
        "zipCode": "1207",
        "country": "Bangladesh",
    }
