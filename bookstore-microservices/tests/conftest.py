import itertools
import os

# Must be set before the backend modules create their engine.
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
import requests
from fastapi.testclient import TestClient

from backend_service.app.database import Base, engine
from backend_service.app.main import app
from storefront.app.backend import BackendClient
from storefront.app.cart import CartStore
from storefront.app.orders import OrderWorkflow
from storefront.app.seller import SellerCatalog
from storefront.app.session import AuthSession

PASSWORD = "secret123"


class DeadHttp:
    """Transport whose every request fails before reaching the backend."""

    def __init__(self):
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url))
        raise requests.exceptions.ConnectionError("connection refused")


@pytest.fixture
def http():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def new_client(http):
    def _new_client():
        return BackendClient("http://testserver", http=http)
    return _new_client


@pytest.fixture
def sign_up(new_client):
    counter = itertools.count(1)

    def _sign_up(role="buyer", email=None, name=None):
        n = next(counter)
        session = AuthSession(new_client(), storage_path=None)
        session.sign_up(email or f"{role}{n}@shop.com", PASSWORD, name or f"{role.title()} {n}", role)
        return session

    return _sign_up


@pytest.fixture
def seller(sign_up):
    return sign_up("seller")


@pytest.fixture
def buyer(sign_up):
    return sign_up("buyer")


@pytest.fixture
def catalog(seller):
    return SellerCatalog(seller.client, seller)


@pytest.fixture
def add_book(catalog):
    def _add_book(title, price=10.0, stock=10):
        return catalog.add_book(title, price, stock)
    return _add_book


@pytest.fixture
def cart(buyer):
    return CartStore(buyer.client, buyer)


@pytest.fixture
def workflow(buyer, cart):
    return OrderWorkflow(buyer.client, buyer, cart)


@pytest.fixture
def stock_of(http):
    def _stock_of(book_id):
        return http.get(f"/api/v1/books/{book_id}").json()["stock"]
    return _stock_of
