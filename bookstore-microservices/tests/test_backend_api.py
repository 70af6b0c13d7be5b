from backend_service.app.config import is_transition_allowed

PASSWORD = "secret123"


def signup(http, email, role, name="Someone"):
    resp = http.post("/auth/signup", json={"email": email, "password": PASSWORD, "name": name, "role": role})
    assert resp.status_code == 200, resp.text
    return resp.json()


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def listed_book(http, token, title="Dune", price=10.0, stock=5):
    resp = http.post("/api/v1/books", json={"title": title, "price": price, "stock": stock}, headers=auth(token))
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_health(http):
    assert http.get("/").json() == {"message": "Bookstore backend is running"}
    assert http.get("/health").json() == {"status": "ok"}


def test_signup_normalises_role_and_rejects_duplicate_email(http):
    data = signup(http, "reader@shop.com", "  Buyer ")
    assert data["user"]["role"] == "buyer"
    assert data["access_token"]

    resp = http.post("/auth/signup", json={"email": "reader@shop.com", "password": PASSWORD, "name": "X", "role": "buyer"})
    assert resp.status_code == 409
    assert "already registered" in resp.json()["detail"]


def test_signup_rejects_unknown_role(http):
    resp = http.post("/auth/signup", json={"email": "a@shop.com", "password": PASSWORD, "name": "A", "role": "admin"})
    assert resp.status_code == 400


def test_signin_messages(http):
    signup(http, "reader@shop.com", "buyer")

    missing = http.post("/auth/signin", json={"email": "nobody@shop.com", "password": PASSWORD})
    assert missing.status_code == 401
    assert "sign up first" in missing.json()["detail"]

    wrong = http.post("/auth/signin", json={"email": "reader@shop.com", "password": "nope-nope"})
    assert wrong.status_code == 401
    assert "Invalid password" in wrong.json()["detail"]

    ok = http.post("/auth/signin", json={"email": "reader@shop.com", "password": PASSWORD})
    assert ok.status_code == 200
    me = http.get("/auth/user", headers=auth(ok.json()["access_token"]))
    assert me.json()["email"] == "reader@shop.com"


def test_requests_without_token_are_rejected(http):
    assert http.get("/api/v1/cart").status_code == 401
    assert http.get("/auth/user", headers=auth("not-a-token")).status_code == 401


def test_only_sellers_list_books_and_only_owners_edit(http):
    seller = signup(http, "seller@shop.com", "seller")["access_token"]
    other = signup(http, "other@shop.com", "seller")["access_token"]
    buyer = signup(http, "buyer@shop.com", "buyer")["access_token"]

    denied = http.post("/api/v1/books", json={"title": "Dune", "price": 10, "stock": 1}, headers=auth(buyer))
    assert denied.status_code == 403

    book = listed_book(http, seller)
    assert http.patch(f"/api/v1/books/{book['id']}", json={"price": 12}, headers=auth(other)).status_code == 403

    edited = http.patch(f"/api/v1/books/{book['id']}", json={"price": 12, "image_url": ""}, headers=auth(seller)).json()
    assert edited["price"] == 12
    assert edited["image_url"] is None

    assert http.delete(f"/api/v1/books/{book['id']}", headers=auth(seller)).status_code == 200
    assert http.get(f"/api/v1/books/{book['id']}").status_code == 404


def test_book_search_and_paging(http):
    seller = signup(http, "seller@shop.com", "seller", name="Ada")["access_token"]
    for title in ("Dune", "Dune Messiah", "Emma"):
        listed_book(http, seller, title=title)

    result = http.get("/api/v1/books", params={"q": "dune"}).json()
    assert result["total"] == 2
    assert [b["title"] for b in result["items"]] == ["Dune Messiah", "Dune"]
    assert result["items"][0]["seller"] == {"name": "Ada"}

    page = http.get("/api/v1/books", params={"offset": 1, "limit": 1}).json()
    assert [b["title"] for b in page["items"]] == ["Dune Messiah"]


def test_cart_upsert_overwrites_quantity(http):
    seller = signup(http, "seller@shop.com", "seller")["access_token"]
    buyer = signup(http, "buyer@shop.com", "buyer")["access_token"]
    book = listed_book(http, seller)

    first = http.put("/api/v1/cart", json={"book_id": book["id"], "quantity": 2}, headers=auth(buyer)).json()
    second = http.put("/api/v1/cart", json={"book_id": book["id"], "quantity": 3}, headers=auth(buyer)).json()

    assert first["id"] == second["id"]
    rows = http.get("/api/v1/cart", headers=auth(buyer)).json()
    assert len(rows) == 1
    assert rows[0]["quantity"] == 3
    assert rows[0]["book"]["title"] == "Dune"


def test_cart_rows_are_private(http):
    seller = signup(http, "seller@shop.com", "seller")["access_token"]
    alice = signup(http, "alice@shop.com", "buyer")["access_token"]
    bob = signup(http, "bob@shop.com", "buyer")["access_token"]
    book = listed_book(http, seller)

    item = http.put("/api/v1/cart", json={"book_id": book["id"], "quantity": 1}, headers=auth(alice)).json()
    assert http.get(f"/api/v1/cart/{item['id']}", headers=auth(bob)).status_code == 404
    assert http.delete(f"/api/v1/cart/{item['id']}", headers=auth(bob)).status_code == 404

    http.delete("/api/v1/cart", headers=auth(bob))
    assert len(http.get("/api/v1/cart", headers=auth(alice)).json()) == 1


def placed_order(http, seller_data, buyer_data, book, quantity):
    buyer = buyer_data["access_token"]
    order = http.post(
        "/api/v1/orders", json={"buyer_id": buyer_data["user"]["id"], "total_price": book["price"] * quantity}, headers=auth(buyer)
    ).json()
    items = [{"book_id": book["id"], "seller_id": seller_data["user"]["id"], "quantity": quantity, "price": book["price"]}]
    assert http.post(f"/api/v1/orders/{order['id']}/items", json={"items": items}, headers=auth(buyer)).status_code == 200
    return order


def deduct(http, token, order_id, book_id, quantity):
    body = {"order_id": order_id, "book_id": book_id, "quantity_to_deduct": quantity}
    return http.post("/api/v1/rpc/decrement_stock", json=body, headers=auth(token))


def stock(http, book):
    return http.get(f"/api/v1/books/{book['id']}").json()["stock"]


def test_decrement_stock_never_goes_negative(http):
    seller_data = signup(http, "seller@shop.com", "seller")
    buyer_data = signup(http, "buyer@shop.com", "buyer")
    rival_data = signup(http, "rival@shop.com", "buyer")
    buyer, rival = buyer_data["access_token"], rival_data["access_token"]
    book = listed_book(http, seller_data["access_token"], stock=3)
    mine = placed_order(http, seller_data, buyer_data, book, 2)
    theirs = placed_order(http, seller_data, rival_data, book, 2)

    ok = deduct(http, buyer, mine["id"], book["id"], 2)
    assert ok.json()["remaining"] == 1

    refused = deduct(http, rival, theirs["id"], book["id"], 2)
    assert refused.status_code == 409
    assert refused.json()["detail"] == {"message": "not enough stock", "title": "Dune", "available": 1}
    assert stock(http, book) == 1

    order = http.get(f"/api/v1/orders/{theirs['id']}", headers=auth(rival)).json()
    assert order["order_items"][0]["stock_deducted"] == 0


def test_decrement_is_limited_to_the_callers_order_lines(http):
    seller_data = signup(http, "seller@shop.com", "seller")
    buyer_data = signup(http, "buyer@shop.com", "buyer")
    other_data = signup(http, "other@shop.com", "buyer")
    buyer = buyer_data["access_token"]
    book = listed_book(http, seller_data["access_token"], stock=10)
    unrelated = listed_book(http, seller_data["access_token"], title="Emma", stock=10)
    order = placed_order(http, seller_data, buyer_data, book, 2)

    assert deduct(http, buyer, order["id"], book["id"], 3).status_code == 400
    assert deduct(http, buyer, order["id"], unrelated["id"], 1).status_code == 400
    assert deduct(http, other_data["access_token"], order["id"], book["id"], 1).status_code == 404
    assert deduct(http, seller_data["access_token"], order["id"], book["id"], 1).status_code == 403
    assert deduct(http, buyer, order["id"], 999, 1).status_code == 404

    assert deduct(http, buyer, order["id"], book["id"], 2).status_code == 200
    assert deduct(http, buyer, order["id"], book["id"], 1).status_code == 400
    assert (stock(http, book), stock(http, unrelated)) == (8, 10)


def test_release_gives_back_only_what_the_order_deducted(http):
    seller_data = signup(http, "seller@shop.com", "seller")
    buyer_data = signup(http, "buyer@shop.com", "buyer")
    other_data = signup(http, "other@shop.com", "buyer")
    buyer = buyer_data["access_token"]
    book = listed_book(http, seller_data["access_token"], stock=5)
    unrelated = listed_book(http, seller_data["access_token"], title="Emma", stock=1)
    order = placed_order(http, seller_data, buyer_data, book, 2)
    deduct(http, buyer, order["id"], book["id"], 2)
    url = f"/api/v1/orders/{order['id']}/release"

    # The old open increment procedure is gone.
    assert http.post("/api/v1/rpc/increment_stock", json={"book_id": unrelated["id"], "quantity": 1000}, headers=auth(buyer)).status_code == 404

    assert http.post(url, json={"items": [{"book_id": unrelated["id"], "quantity": 1000}]}, headers=auth(buyer)).status_code == 409
    assert http.post(url, json={"items": [{"book_id": book["id"], "quantity": 3}]}, headers=auth(buyer)).status_code == 409
    assert http.post(url, json={"items": [{"book_id": book["id"], "quantity": 1}]}, headers=auth(other_data["access_token"])).status_code == 404
    assert (stock(http, book), stock(http, unrelated)) == (3, 1)

    released = http.post(url, json={"items": [{"book_id": book["id"], "quantity": 2}]}, headers=auth(buyer))
    assert released.status_code == 200
    assert released.json()["order_items"][0]["stock_deducted"] == 0
    assert stock(http, book) == 5

    again = http.post(url, json={"items": [{"book_id": book["id"], "quantity": 2}]}, headers=auth(buyer))
    assert again.status_code == 409
    assert stock(http, book) == 5


def test_cancelling_an_order_returns_its_stock_once(http):
    seller_data = signup(http, "seller@shop.com", "seller")
    buyer_data = signup(http, "buyer@shop.com", "buyer")
    seller, buyer = seller_data["access_token"], buyer_data["access_token"]
    book = listed_book(http, seller, stock=5)

    by_buyer = placed_order(http, seller_data, buyer_data, book, 2)
    deduct(http, buyer, by_buyer["id"], book["id"], 2)
    assert stock(http, book) == 3
    cancelled = http.patch(f"/api/v1/orders/{by_buyer['id']}/status", json={"status": "Cancelled"}, headers=auth(buyer))
    assert cancelled.json()["status"] == "Cancelled"
    assert stock(http, book) == 5
    http.patch(f"/api/v1/orders/{by_buyer['id']}/status", json={"status": "Cancelled"}, headers=auth(buyer))
    assert stock(http, book) == 5

    shipped = placed_order(http, seller_data, buyer_data, book, 1)
    deduct(http, buyer, shipped["id"], book["id"], 1)
    url = f"/api/v1/orders/{shipped['id']}/status"
    http.patch(url, json={"status": "Shipped"}, headers=auth(seller))
    assert stock(http, book) == 4
    assert http.patch(url, json={"status": "Cancelled"}, headers=auth(seller)).json()["status"] == "Cancelled"
    assert stock(http, book) == 5


def test_deleting_a_book_keeps_order_history(http):
    seller_data = signup(http, "seller@shop.com", "seller")
    buyer_data = signup(http, "buyer@shop.com", "buyer")
    seller, buyer = seller_data["access_token"], buyer_data["access_token"]
    book = listed_book(http, seller, stock=5)
    order = placed_order(http, seller_data, buyer_data, book, 1)
    deduct(http, buyer, order["id"], book["id"], 1)
    http.put("/api/v1/cart", json={"book_id": book["id"], "quantity": 1}, headers=auth(buyer))
    http.post("/api/v1/reviews", json={"book_id": book["id"], "rating": 4}, headers=auth(buyer))

    resp = http.delete(f"/api/v1/books/{book['id']}", headers=auth(seller))

    assert resp.status_code == 200
    assert http.get(f"/api/v1/books/{book['id']}").status_code == 404
    assert http.get("/api/v1/cart", headers=auth(buyer)).json() == []
    line = http.get(f"/api/v1/orders/{order['id']}", headers=auth(buyer)).json()["order_items"][0]
    assert (line["book_id"], line["book"], line["quantity"]) == (None, None, 1)
    cancelled = http.patch(f"/api/v1/orders/{order['id']}/status", json={"status": "Cancelled"}, headers=auth(buyer))
    assert cancelled.status_code == 200


def test_order_items_are_written_once(http):
    seller_data = signup(http, "seller@shop.com", "seller")
    buyer_data = signup(http, "buyer@shop.com", "buyer")
    seller, buyer = seller_data["access_token"], buyer_data["access_token"]
    book = listed_book(http, seller)

    order = http.post("/api/v1/orders", json={"buyer_id": buyer_data["user"]["id"], "total_price": 10}, headers=auth(buyer)).json()
    assert order["status"] == "Pending"

    items = [{"book_id": book["id"], "seller_id": seller_data["user"]["id"], "quantity": 1, "price": 10}]
    assert http.post(f"/api/v1/orders/{order['id']}/items", json={"items": items}, headers=auth(buyer)).status_code == 200
    again = http.post(f"/api/v1/orders/{order['id']}/items", json={"items": items}, headers=auth(buyer))
    assert again.status_code == 409


def test_order_for_someone_else_is_refused(http):
    buyer = signup(http, "buyer@shop.com", "buyer")
    resp = http.post("/api/v1/orders", json={"buyer_id": buyer["user"]["id"] + 100, "total_price": 1}, headers=auth(buyer["access_token"]))
    assert resp.status_code == 403


def test_status_updates_follow_policy_and_roles(http):
    seller_data = signup(http, "seller@shop.com", "seller")
    buyer_data = signup(http, "buyer@shop.com", "buyer")
    seller, buyer = seller_data["access_token"], buyer_data["access_token"]
    book = listed_book(http, seller)
    order = http.post("/api/v1/orders", json={"buyer_id": buyer_data["user"]["id"], "total_price": 10}, headers=auth(buyer)).json()
    items = [{"book_id": book["id"], "seller_id": seller_data["user"]["id"], "quantity": 1, "price": 10}]
    http.post(f"/api/v1/orders/{order['id']}/items", json={"items": items}, headers=auth(buyer))
    url = f"/api/v1/orders/{order['id']}/status"

    assert http.patch(url, json={"status": "Shipped"}, headers=auth(buyer)).status_code == 403
    assert http.patch(url, json={"status": "Lost"}, headers=auth(seller)).status_code == 400
    assert http.patch(url, json={"status": "Shipped"}, headers=auth(seller)).json()["status"] == "Shipped"
    assert http.patch(url, json={"status": "Delivered"}, headers=auth(seller)).json()["status"] == "Delivered"
    assert http.patch(url, json={"status": "Pending"}, headers=auth(seller)).status_code == 409


def test_transition_policy_modes():
    assert is_transition_allowed("Pending", "Shipped", "strict")
    assert not is_transition_allowed("Delivered", "Pending", "strict")
    assert is_transition_allowed("Delivered", "Pending", "unrestricted")
    assert is_transition_allowed("Cancelled", "Cancelled", "strict")
    assert not is_transition_allowed("Pending", "Lost", "unrestricted")


def test_seller_orders_and_stats(http):
    ada = signup(http, "ada@shop.com", "seller")
    bob = signup(http, "bob@shop.com", "seller")
    buyer_data = signup(http, "buyer@shop.com", "buyer", name="Reader")
    buyer = buyer_data["access_token"]
    ada_book = listed_book(http, ada["access_token"], title="Dune", price=10)
    bob_book = listed_book(http, bob["access_token"], title="Emma", price=4)

    order = http.post("/api/v1/orders", json={"buyer_id": buyer_data["user"]["id"], "total_price": 24}, headers=auth(buyer)).json()
    items = [
        {"book_id": ada_book["id"], "seller_id": ada["user"]["id"], "quantity": 2, "price": 10},
        {"book_id": bob_book["id"], "seller_id": bob["user"]["id"], "quantity": 1, "price": 4},
    ]
    http.post(f"/api/v1/orders/{order['id']}/items", json={"items": items}, headers=auth(buyer))

    ada_orders = http.get("/api/v1/seller/orders", headers=auth(ada["access_token"])).json()
    assert len(ada_orders) == 1
    assert [i["book_id"] for i in ada_orders[0]["order_items"]] == [ada_book["id"]]
    assert ada_orders[0]["buyer"] == {"name": "Reader", "email": "buyer@shop.com"}

    stats = http.get("/api/v1/seller/stats", headers=auth(ada["access_token"])).json()
    assert stats == {"total_books": 1, "total_orders": 1, "total_revenue": 0.0}

    url = f"/api/v1/orders/{order['id']}/status"
    http.patch(url, json={"status": "Shipped"}, headers=auth(ada["access_token"]))
    http.patch(url, json={"status": "Delivered"}, headers=auth(ada["access_token"]))
    stats = http.get("/api/v1/seller/stats", headers=auth(ada["access_token"])).json()
    assert stats["total_revenue"] == 20.0


def test_addresses_newest_first(http):
    buyer = signup(http, "buyer@shop.com", "buyer")["access_token"]
    http.post("/api/v1/addresses", json={"address": "1 Old Road", "phone_no": "111"}, headers=auth(buyer))
    http.post("/api/v1/addresses", json={"address": "2 New Road", "phone_no": "222"}, headers=auth(buyer))
    blank = http.post("/api/v1/addresses", json={"address": "  ", "phone_no": "333"}, headers=auth(buyer))

    assert blank.status_code == 400
    rows = http.get("/api/v1/addresses", headers=auth(buyer)).json()
    assert [r["address"] for r in rows] == ["2 New Road", "1 Old Road"]
