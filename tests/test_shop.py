from core import db, Order, Product

SHIPPING = {
    "shipping_street": "12 Lake Road",
    "shipping_city": "Dhaka",
    "shipping_state": "Dhaka",
    "shipping_zipCode": "1207",
    "shipping_country": "Bangladesh",
    "billing_same": "on",
}


def _checkout(client, **extra):
    form = dict(SHIPPING, payment_method="cod")
    form.update(extra)
    return client.post("/checkout", data=form)


def test_product_listings(client, make_product, address):
    featured = make_product("FEAT", name="Featured Mug", is_featured=True)
    make_product("PLAIN", name="Plain Mug")
    make_product("HIDDEN", name="Hidden Mug", is_active=False)
    client.post("/api/checkout", json={
        "items": [{"productId": featured, "quantity": 1}],
        "shippingAddress": address,
        "paymentMethod": "cod",
    })

    assert [p["sku"] for p in client.get("/api/products?featured=true").get_json()] == ["FEAT"]
    assert client.get("/api/products?bestSellers=true").get_json()[0]["sku"] == "FEAT"
    new = [p["sku"] for p in client.get("/api/products?newArrivals=true").get_json()]
    assert new == ["PLAIN", "FEAT"]

    page = client.get("/")
    assert page.status_code == 200
    assert b"Featured Mug" in page.data
    assert b"Hidden Mug" not in page.data
    assert b"Featured Products" in client.get("/products?filter=featured").data


def test_product_detail(client, make_product):
    product_id = make_product("MUG", name="Blue Mug")
    hidden = make_product("HID", is_active=False)
    assert b"Blue Mug" in client.get(f"/products/{product_id}").data
    assert client.get(f"/products/{hidden}").status_code == 404
    assert client.get(f"/api/products/{hidden}").get_json() == {"error": "Product not found"}


def test_cart_add_update_remove(client, make_product):
    mug = make_product("MUG", name="Mug", price="350.00", stock_level=3)
    lamp = make_product("LAMP", name="Lamp", price="990.00", stock_level=5)

    client.post(f"/cart/add/{mug}", data={"quantity": "2"})
    client.post(f"/cart/add/{mug}", data={"quantity": "5"})
    client.post(f"/cart/add/{lamp}", data={"quantity": "1"})
    with client.session_transaction() as sess:
        lines = {it["id"]: it["quantity"] for it in sess["shoppingCart_test-store"]}
    assert lines == {mug: 3, lamp: 1}

    page = client.get("/cart")
    assert b"2040.00" in page.data

    client.post("/cart", data={f"qty-{mug}": "0", f"qty-{lamp}": "2"})
    with client.session_transaction() as sess:
        assert [(it["id"], it["quantity"]) for it in sess["shoppingCart_test-store"]] == [(lamp, 2)]

    client.post(f"/cart/remove/{lamp}")
    with client.session_transaction() as sess:
        assert sess["shoppingCart_test-store"] == []


def test_out_of_stock_product_is_not_added(client, make_product):
    empty = make_product("EMPTY", stock_level=0)
    resp = client.post(f"/cart/add/{empty}", data={"quantity": "1"})
    assert resp.status_code == 302
    with client.session_transaction() as sess:
        assert not sess.get("shoppingCart_test-store")


def test_checkout_with_empty_cart_redirects(client):
    resp = client.get("/checkout")
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/products")


def test_checkout_form_places_order_and_clears_cart(client, make_product):
    mug = make_product("MUG", name="Mug", price="350.00", stock_level=3)
    client.post(f"/cart/add/{mug}", data={"quantity": "2"})

    resp = _checkout(client)
    assert resp.status_code == 302
    order = Order.query.one()
    assert resp.headers["Location"].endswith(f"/order-confirmation/{order.id}")
    assert str(order.total_amount) == "700.00"
    assert order.billing_address == order.shipping_address
    assert db.session.get(Product, mug).stock_level == 1
    with client.session_transaction() as sess:
        assert sess["shoppingCart_test-store"] == []

    page = client.get(f"/order-confirmation/{order.id}")
    assert order.order_number.encode() in page.data


def test_checkout_form_validation(client, make_product):
    mug = make_product("MUG", stock_level=3)
    client.post(f"/cart/add/{mug}", data={"quantity": "1"})

    resp = _checkout(client, payment_method="bkash")
    assert resp.status_code == 400
    assert b"Transaction ID is required" in resp.data

    resp = _checkout(client, shipping_city="")
    assert resp.status_code == 400
    assert Order.query.count() == 0

    resp = _checkout(client, payment_method="bkash", transaction_id="TX123")
    assert resp.status_code == 302
    assert Order.query.one().payment_transaction_id == "TX123"


def test_checkout_form_reports_stock_conflict(client, make_product):
    mug = make_product("MUG", name="Mug", stock_level=3)
    client.post(f"/cart/add/{mug}", data={"quantity": "3"})
    product = db.session.get(Product, mug)
    product.stock_level = 1
    db.session.commit()

    resp = _checkout(client)
    assert resp.status_code == 409
    assert b"Insufficient stock for product Mug" in resp.data
    assert Order.query.count() == 0
