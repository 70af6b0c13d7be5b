# In file: bookstore-microservices/backend_service/app/main.py

from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from .config import ORDER_STATUSES, ROLES, is_transition_allowed
from .database import Base, engine, get_db
from .models import Address, Book, CartItem, Order, OrderItem, Review, User
from .schemas import (
    AddressCreate,
    BookCreate,
    BookUpdate,
    CartUpdate,
    CartUpsert,
    DecrementRequest,
    OrderCreate,
    OrderItemsCreate,
    ReleaseRequest,
    ReviewCreate,
    SignInRequest,
    SignUpRequest,
    StatusUpdate,
)
from .security import create_access_token, get_current_user, hash_password, require_role, verify_password

# Create database tables on startup if they don't exist.
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Bookstore Backend")


# --- Serializers ---
def _timestamp(value):
    return value.isoformat() if value else None


def user_to_dict(user: User) -> dict:
    return {"id": user.id, "email": user.email, "name": user.name, "role": user.role}


def book_to_dict(book: Optional[Book], with_seller: bool = False) -> Optional[dict]:
    if book is None:
        return None
    data = {
        "id": book.id,
        "title": book.title,
        "description": book.description,
        "price": book.price,
        "stock": book.stock,
        "seller_id": book.seller_id,
        "image_url": book.image_url,
        "created_at": _timestamp(book.created_at),
    }
    if with_seller:
        data["seller"] = {"name": book.seller.name} if book.seller else None
    return data


def cart_item_to_dict(item: CartItem) -> dict:
    return {
        "id": item.id,
        "book_id": item.book_id,
        "quantity": item.quantity,
        "book": book_to_dict(item.book),
    }


def order_item_to_dict(item: OrderItem) -> dict:
    return {
        "id": item.id,
        "order_id": item.order_id,
        "book_id": item.book_id,
        "seller_id": item.seller_id,
        "quantity": item.quantity,
        "price": item.price,
        "stock_deducted": item.stock_deducted,
        "book": {"title": item.book.title, "image_url": item.book.image_url} if item.book else None,
    }


def order_to_dict(order: Order, items: Optional[List[OrderItem]] = None) -> dict:
    items = order.items if items is None else items
    return {
        "id": order.id,
        "buyer_id": order.buyer_id,
        "total_price": order.total_price,
        "status": order.status,
        "created_at": _timestamp(order.created_at),
        "order_items": [order_item_to_dict(i) for i in items],
    }


def address_to_dict(address: Address) -> dict:
    return {
        "id": address.id,
        "buyer_id": address.buyer_id,
        "address": address.address,
        "phone_no": address.phone_no,
        "created_at": _timestamp(address.created_at),
    }


def review_to_dict(review: Review) -> dict:
    return {
        "id": review.id,
        "buyer_id": review.buyer_id,
        "book_id": review.book_id,
        "rating": review.rating,
        "comment": review.comment,
        "buyer": {"name": review.buyer.name} if review.buyer else None,
        "created_at": _timestamp(review.created_at),
    }


# --- Lookups ---
def _get_book(db: Session, book_id: int) -> Book:
    book = db.query(Book).filter(Book.id == book_id).first()
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


def _get_own_cart_item(db: Session, item_id: int, user: User) -> CartItem:
    item = db.query(CartItem).filter(CartItem.id == item_id, CartItem.buyer_id == user.id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Cart item not found")
    return item


def _get_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _get_own_order(db: Session, order_id: int, user: User) -> Order:
    order = _get_order(db, order_id)
    if order.buyer_id != user.id:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _give_back_stock(db: Session, item: OrderItem, quantity: int):
    """Returns `quantity` units the order line deducted to its book. Caller commits."""
    item.stock_deducted -= quantity
    if item.book_id is not None:
        db.query(Book).filter(Book.id == item.book_id).update(
            {Book.stock: Book.stock + quantity}, synchronize_session=False
        )


# --- Health ---
@app.get("/")
def root():
    """Health check endpoint."""
    return {"message": "Bookstore backend is running"}


@app.get("/health")
def health():
    return {"status": "ok"}


# --- Auth ---
@app.post("/auth/signup")
def sign_up(req: SignUpRequest, db: Session = Depends(get_db)):
    """Creates the account and its profile, then signs the new user in."""
    role = req.role.strip().lower()
    if role not in ROLES:
        raise HTTPException(status_code=400, detail="Role must be 'buyer' or 'seller'")
    if db.query(User).filter(User.email == req.email).first():
        raise HTTPException(status_code=409, detail="This email is already registered. Please sign in instead.")

    user = User(email=req.email, name=req.name.strip(), role=role, password_hash=hash_password(req.password))
    db.add(user)
    db.commit()
    db.refresh(user)
    print(f" [x] Signed up {user.email} as {user.role}")
    return {"access_token": create_access_token(user), "token_type": "bearer", "user": user_to_dict(user)}


@app.post("/auth/signin")
def sign_in(req: SignInRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == req.email).first()
    if not user:
        raise HTTPException(status_code=401, detail="No account found with this email. Please sign up first.")
    if not verify_password(req.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid password. Please check your credentials.")
    return {"access_token": create_access_token(user), "token_type": "bearer", "user": user_to_dict(user)}


@app.post("/auth/signout")
def sign_out(user: User = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy.
    return {"status": "signed_out"}


@app.get("/auth/user")
def current_user(user: User = Depends(get_current_user)):
    return user_to_dict(user)


# --- Books ---
@app.get("/api/v1/books")
def list_books(
    q: Optional[str] = None,
    seller_id: Optional[int] = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """Lists books newest first, optionally filtered by title and seller."""
    query = db.query(Book)
    if q:
        query = query.filter(Book.title.ilike(f"%{q}%"))
    if seller_id is not None:
        query = query.filter(Book.seller_id == seller_id)
    total = query.count()
    books = query.order_by(Book.created_at.desc(), Book.id.desc()).offset(offset).limit(limit).all()
    return {"items": [book_to_dict(b, with_seller=True) for b in books], "total": total, "offset": offset, "limit": limit}


@app.get("/api/v1/books/{book_id}")
def get_book(book_id: int, db: Session = Depends(get_db)):
    return book_to_dict(_get_book(db, book_id), with_seller=True)


@app.post("/api/v1/books")
def create_book(req: BookCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    require_role(user, "seller")
    title = req.title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="Please enter a book title")
    book = Book(
        seller_id=user.id,
        title=title,
        description=req.description.strip(),
        price=req.price,
        stock=req.stock,
        image_url=(req.image_url or "").strip() or None,
    )
    db.add(book)
    db.commit()
    db.refresh(book)
    print(f" [x] Seller {user.id} listed book {book.id} ({book.title})")
    return book_to_dict(book)


@app.patch("/api/v1/books/{book_id}")
def update_book(book_id: int, req: BookUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    require_role(user, "seller")
    book = _get_book(db, book_id)
    if book.seller_id != user.id:
        raise HTTPException(status_code=403, detail="You can only edit your own books")

    for field, value in req.model_dump(exclude_unset=True).items():
        if value is None and field != "image_url":
            continue
        if isinstance(value, str):
            value = value.strip()
        if field == "image_url":
            value = value or None
        setattr(book, field, value)
    if not book.title:
        raise HTTPException(status_code=400, detail="Please enter a book title")
    db.commit()
    db.refresh(book)
    return book_to_dict(book)


@app.delete("/api/v1/books/{book_id}")
def delete_book(book_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    require_role(user, "seller")
    book = _get_book(db, book_id)
    if book.seller_id != user.id:
        raise HTTPException(status_code=403, detail="You can only delete your own books")
    # Cart rows and reviews go with the book; order lines stay, detached from it.
    db.query(CartItem).filter(CartItem.book_id == book_id).delete(synchronize_session=False)
    db.query(Review).filter(Review.book_id == book_id).delete(synchronize_session=False)
    db.query(OrderItem).filter(OrderItem.book_id == book_id).update({OrderItem.book_id: None}, synchronize_session=False)
    db.delete(book)
    db.commit()
    print(f" [x] Seller {user.id} deleted book {book_id}")
    return {"status": "deleted", "id": book_id}


@app.get("/api/v1/books/{book_id}/reviews")
def list_reviews(book_id: int, db: Session = Depends(get_db)):
    reviews = db.query(Review).filter(Review.book_id == book_id).order_by(Review.created_at.desc(), Review.id.desc()).all()
    return [review_to_dict(r) for r in reviews]


@app.post("/api/v1/reviews")
def create_review(req: ReviewCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    require_role(user, "buyer")
    _get_book(db, req.book_id)
    review = Review(buyer_id=user.id, book_id=req.book_id, rating=req.rating, comment=req.comment.strip())
    db.add(review)
    db.commit()
    db.refresh(review)
    return review_to_dict(review)


# --- Cart ---
@app.get("/api/v1/cart")
def list_cart(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    items = db.query(CartItem).filter(CartItem.buyer_id == user.id).order_by(CartItem.id).all()
    return [cart_item_to_dict(i) for i in items]


@app.put("/api/v1/cart")
def upsert_cart_item(req: CartUpsert, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Upserts on (buyer_id, book_id).
    - If the book is already in the cart, its quantity is overwritten (not summed).
    - Otherwise a new cart row is created.
    """
    require_role(user, "buyer")
    _get_book(db, req.book_id)
    item = db.query(CartItem).filter(CartItem.buyer_id == user.id, CartItem.book_id == req.book_id).first()

    if item:
        item.quantity = req.quantity
    else:
        item = CartItem(buyer_id=user.id, book_id=req.book_id, quantity=req.quantity)
        db.add(item)

    db.commit()
    db.refresh(item)
    return cart_item_to_dict(item)


@app.get("/api/v1/cart/{item_id}")
def get_cart_item(item_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return cart_item_to_dict(_get_own_cart_item(db, item_id, user))


@app.patch("/api/v1/cart/{item_id}")
def update_cart_item(item_id: int, req: CartUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    item = _get_own_cart_item(db, item_id, user)
    item.quantity = req.quantity
    db.commit()
    db.refresh(item)
    return cart_item_to_dict(item)


@app.delete("/api/v1/cart/{item_id}")
def delete_cart_item(item_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    item = _get_own_cart_item(db, item_id, user)
    db.delete(item)
    db.commit()
    return {"status": "deleted", "id": item_id}


@app.delete("/api/v1/cart")
def clear_cart(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    deleted = db.query(CartItem).filter(CartItem.buyer_id == user.id).delete(synchronize_session=False)
    db.commit()
    return {"status": "cleared", "deleted": deleted}


# --- Orders ---
@app.post("/api/v1/orders")
def create_order(req: OrderCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    require_role(user, "buyer")
    if req.buyer_id != user.id:
        raise HTTPException(status_code=403, detail="Orders can only be placed for yourself")
    order = Order(buyer_id=user.id, total_price=round(req.total_price, 2), status="Pending")
    db.add(order)
    db.commit()
    db.refresh(order)
    print(f" [x] Order {order.id} created for buyer {user.id} (total={order.total_price})")
    return order_to_dict(order)


@app.get("/api/v1/orders")
def list_orders(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Buyer's order history, newest first, each with its items and book titles."""
    orders = db.query(Order).filter(Order.buyer_id == user.id).order_by(Order.created_at.desc(), Order.id.desc()).all()
    return [order_to_dict(o) for o in orders]


@app.get("/api/v1/orders/{order_id}")
def get_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = _get_order(db, order_id)
    if order.buyer_id == user.id:
        return order_to_dict(order)
    own_items = [i for i in order.items if i.seller_id == user.id]
    if not own_items:
        raise HTTPException(status_code=404, detail="Order not found")
    return order_to_dict(order, own_items)


@app.post("/api/v1/orders/{order_id}/items")
def add_order_items(order_id: int, req: OrderItemsCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Inserts the whole batch of order items in one commit. Items are immutable once written."""
    order = _get_own_order(db, order_id, user)
    if order.items:
        raise HTTPException(status_code=409, detail="Order items have already been recorded")
    for i in req.items:
        if _get_book(db, i.book_id).seller_id != i.seller_id:
            raise HTTPException(status_code=400, detail=f"Book {i.book_id} is not sold by seller {i.seller_id}")

    rows = [
        OrderItem(order_id=order.id, book_id=i.book_id, seller_id=i.seller_id, quantity=i.quantity, price=i.price)
        for i in req.items
    ]
    db.add_all(rows)
    db.commit()
    db.refresh(order)
    return [order_item_to_dict(i) for i in order.items]


@app.patch("/api/v1/orders/{order_id}/status")
def update_order_status(order_id: int, req: StatusUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Changes an order's status.
    - A seller with items in the order may make any move the transition policy allows.
    - The buyer may only cancel their own order while it is still Pending.
    - Cancelling gives back whatever stock the order still holds, in the same commit.
    """
    if req.status not in ORDER_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown status '{req.status}'")
    order = _get_order(db, order_id)

    is_seller = user.role == "seller" and any(i.seller_id == user.id for i in order.items)
    is_owner = order.buyer_id == user.id
    if not is_seller and not is_owner:
        raise HTTPException(status_code=404, detail="Order not found")
    if not is_seller and not (req.status == "Cancelled" and order.status in ("Pending", "Cancelled")):
        raise HTTPException(status_code=403, detail="Buyers can only cancel a pending order")
    if not is_transition_allowed(order.status, req.status):
        raise HTTPException(status_code=409, detail=f"Cannot move order from {order.status} to {req.status}")

    previous = order.status
    order.status = req.status
    if req.status == "Cancelled":
        for item in order.items:
            if item.stock_deducted:
                print(f" [*] Order {order.id} cancelled: releasing {item.stock_deducted} of book {item.book_id}")
                _give_back_stock(db, item, item.stock_deducted)
    db.commit()
    db.refresh(order)
    print(f" [x] Order {order.id} status {previous} -> {order.status}")
    return order_to_dict(order)


# --- Seller views ---
@app.get("/api/v1/seller/orders")
def list_seller_orders(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Orders containing at least one of the seller's books, with only the seller's items."""
    require_role(user, "seller")
    order_ids = [row[0] for row in db.query(OrderItem.order_id).filter(OrderItem.seller_id == user.id).distinct()]
    if not order_ids:
        return []
    orders = db.query(Order).filter(Order.id.in_(order_ids)).order_by(Order.created_at.desc(), Order.id.desc()).all()
    result = []
    for order in orders:
        data = order_to_dict(order, [i for i in order.items if i.seller_id == user.id])
        data["buyer"] = {"name": order.buyer.name, "email": order.buyer.email} if order.buyer else None
        result.append(data)
    return result


@app.get("/api/v1/seller/stats")
def seller_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Dashboard numbers: listed books, ordered line items and revenue from delivered orders."""
    require_role(user, "seller")
    total_books = db.query(Book).filter(Book.seller_id == user.id).count()
    total_orders = db.query(OrderItem).filter(OrderItem.seller_id == user.id).count()
    revenue = (
        db.query(func.coalesce(func.sum(OrderItem.price * OrderItem.quantity), 0.0))
        .select_from(OrderItem)
        .join(Order, Order.id == OrderItem.order_id)
        .filter(OrderItem.seller_id == user.id, Order.status == "Delivered")
        .scalar()
    )
    return {"total_books": total_books, "total_orders": total_orders, "total_revenue": round(float(revenue), 2)}


# --- Addresses ---
@app.get("/api/v1/addresses")
def list_addresses(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    addresses = db.query(Address).filter(Address.buyer_id == user.id).order_by(Address.created_at.desc(), Address.id.desc()).all()
    return [address_to_dict(a) for a in addresses]


@app.post("/api/v1/addresses")
def create_address(req: AddressCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    address, phone_no = req.address.strip(), req.phone_no.strip()
    if not address or not phone_no:
        raise HTTPException(status_code=400, detail="Please fill in all fields")
    row = Address(buyer_id=user.id, address=address, phone_no=phone_no)
    db.add(row)
    db.commit()
    db.refresh(row)
    return address_to_dict(row)


# --- Stock procedures ---
@app.post("/api/v1/rpc/decrement_stock")
def decrement_stock(req: DecrementRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Deducts stock for one line of the caller's pending order with one conditional UPDATE.
    - Only succeeds while stock >= quantity_to_deduct, so stock never goes negative.
    - The order line records what it took; that is all that can ever be given back.
    """
    require_role(user, "buyer")
    order = _get_own_order(db, req.order_id, user)
    if order.status != "Pending":
        raise HTTPException(status_code=400, detail="Stock can only be deducted for a pending order")
    book = _get_book(db, req.book_id)
    item = next((i for i in order.items if i.book_id == req.book_id), None)
    if item is None or item.quantity - item.stock_deducted < req.quantity_to_deduct:
        raise HTTPException(status_code=400, detail=f"Order {order.id} does not hold {req.quantity_to_deduct} more of book {req.book_id}")

    updated = (
        db.query(Book)
        .filter(Book.id == req.book_id, Book.stock >= req.quantity_to_deduct)
        .update({Book.stock: Book.stock - req.quantity_to_deduct}, synchronize_session=False)
    )
    if updated == 0:
        db.rollback()
        db.refresh(book)
        raise HTTPException(
            status_code=409,
            detail={"message": "not enough stock", "title": book.title, "available": book.stock},
        )
    item.stock_deducted += req.quantity_to_deduct
    db.commit()
    db.refresh(book)
    print(f" [x] Order {order.id}: reserved {req.quantity_to_deduct} of book {book.id} ({book.stock} left)")
    return {"status": "reserved", "book_id": book.id, "remaining": book.stock}


@app.post("/api/v1/orders/{order_id}/release")
def release_order_stock(order_id: int, req: ReleaseRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Gives back stock the caller's order deducted, used to compensate a failed checkout.
    Every (book_id, quantity) must be covered by what that order line still holds,
    otherwise nothing is released.
    """
    require_role(user, "buyer")
    order = _get_own_order(db, order_id, user)
    lines = {i.book_id: i for i in order.items if i.book_id is not None}
    for entry in req.items:
        item = lines.get(entry.book_id)
        if item is None or item.stock_deducted < entry.quantity:
            db.rollback()
            raise HTTPException(
                status_code=409,
                detail=f"Order {order.id} holds no {entry.quantity} of book {entry.book_id} to release",
            )
        _give_back_stock(db, item, entry.quantity)
    db.commit()
    db.refresh(order)
    print(f" [x] Order {order.id}: released stock for {len(req.items)} line(s)")
    return order_to_dict(order)


if __name__ == "__main__":
    import os
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
