# cart.py
"""Shopping cart state.

The cart is a list of line dicts ``{id, name, price, stockLevel, imageUrl,
quantity}``. ``reduce`` is a pure function of (items, action) and never
mutates the list it is given; the session helpers at the bottom persist the
result per store.
"""
from flask import current_app, session
from decimal import Decimal, InvalidOperation

ADD_ITEM = "ADD_ITEM"
UPDATE_QUANTITY = "UPDATE_QUANTITY"
REMOVE_ITEM = "REMOVE_ITEM"
CLEAR_CART = "CLEAR_CART"
LOAD_CART = "LOAD_CART"


def line_from_product(product):
    """Snapshot the fields of a Product (or product dict) the cart keeps."""
    if isinstance(product, dict):
        return {
            "id": product["id"],
            "name": product.get("name", ""),
            "price": str(product.get("price", "0")),
            "stockLevel": int(product.get("stockLevel", 0)),
            "imageUrl": product.get("imageUrl"),
        }
    return {
        "id": product.id,
        "name": product.name,
        "price": str(product.price),
        "stockLevel": int(product.stock_level),
        "imageUrl": product.image_url,
    }


def reduce(items, action):
    kind = action.get("type")
    payload = action.get("payload") or {}

    if kind == LOAD_CART:
        return [dict(it) for it in payload]

    if kind == ADD_ITEM:
        product = line_from_product(payload["product"])
        quantity = int(payload["quantity"])
        updated = []
        found = False
        for it in items:
            if it["id"] == product["id"]:
                found = True
                it = {**it, "quantity": min(it["quantity"] + quantity, product["stockLevel"])}
            updated.append(it)
        if not found:
            updated.append({**product, "quantity": min(quantity, product["stockLevel"])})
        return [it for it in updated if it["quantity"] > 0]

    if kind == UPDATE_QUANTITY:
        product_id = payload["productId"]
        quantity = int(payload["quantity"])
        updated = []
        for it in items:
            if it["id"] == product_id:
                it = {**it, "quantity": max(0, min(quantity, it["stockLevel"]))}
            updated.append(it)
        return [it for it in updated if it["quantity"] > 0]

    if kind == REMOVE_ITEM:
        return [it for it in items if it["id"] != payload["productId"]]

    if kind == CLEAR_CART:
        return []

    return items


def add_item(items, product, quantity):
    return reduce(items, {"type": ADD_ITEM, "payload": {"product": product, "quantity": quantity}})


def update_item_quantity(items, product_id, quantity):
    return reduce(items, {"type": UPDATE_QUANTITY, "payload": {"productId": product_id, "quantity": quantity}})


def remove_item(items, product_id):
    return reduce(items, {"type": REMOVE_ITEM, "payload": {"productId": product_id}})


def clear_cart(items):
    return reduce(items, {"type": CLEAR_CART})


def item_count(items):
    return sum(int(it["quantity"]) for it in items)


def cart_total(items):
    total = Decimal("0.00")
    for it in items:
        total += Decimal(str(it["price"])) * int(it["quantity"])
    return total.quantize(Decimal("0.01"))


# --- Session persistence ---
def cart_key():
    store_id = current_app.config.get("STORE_ID")
    return f"shoppingCart_{store_id or 'default'}"


def load_cart():
    raw = session.get(cart_key()) or []
    try:
        items = reduce([], {"type": LOAD_CART, "payload": raw})
        for it in items:
            Decimal(str(it["price"]))
            int(it["quantity"])
        return items
    except (TypeError, KeyError, ValueError, InvalidOperation):
        current_app.logger.error("Failed to load cart from session; starting empty.")
        session.pop(cart_key(), None)
        return []


def save_cart(items):
    session[cart_key()] = items
    return items
