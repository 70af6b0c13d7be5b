import threading
import time

import pytest
import requests

from storefront.app.backend import BackendClient
from storefront.app.errors import NotAuthenticated, NotPermitted, ValidationFailed
from storefront.app.models import Role
from storefront.app.session import SIGNED_IN, SIGNED_OUT, USER_UPDATED, AuthSession

from conftest import PASSWORD, DeadHttp


def test_sign_up_signs_in_and_notifies(new_client):
    session = AuthSession(new_client(), storage_path=None)
    events = []
    session.subscribe(lambda event, user: events.append((event, user.email if user else None)))

    user = session.sign_up("reader@shop.com", PASSWORD, "Reader", "Buyer")

    assert user.role == Role.BUYER
    assert session.is_authenticated
    assert session.loading is False
    assert events == [(SIGNED_IN, "reader@shop.com")]


def test_unsubscribe_stops_notifications(buyer):
    events = []
    unsubscribe = buyer.subscribe(lambda event, user: events.append(event))
    buyer.refresh()
    unsubscribe()
    buyer.sign_out()
    assert events == [USER_UPDATED]


def test_sign_in_with_wrong_password(new_client, buyer):
    session = AuthSession(new_client(), storage_path=None)
    with pytest.raises(NotAuthenticated) as excinfo:
        session.sign_in(buyer.user.email, "wrong-password")
    assert "Invalid password" in excinfo.value.message
    assert session.user is None


@pytest.mark.parametrize(
    "email, password, name, role",
    [
        ("", PASSWORD, "Reader", "buyer"),
        ("reader@shop.com", "123", "Reader", "buyer"),
        ("reader@shop.com", PASSWORD, "Reader", "admin"),
    ],
)
def test_sign_up_validates_form_before_calling_backend(email, password, name, role):
    dead = DeadHttp()
    session = AuthSession(BackendClient("http://testserver", http=dead), storage_path=None)
    with pytest.raises(ValidationFailed):
        session.sign_up(email, password, name, role)
    assert dead.calls == []


def test_restore_from_saved_token(new_client, buyer, tmp_path):
    token_file = tmp_path / "session"
    token_file.write_text(buyer.client.token)
    session = AuthSession(new_client(), storage_path=str(token_file))
    events = []
    session.subscribe(lambda event, user: events.append(event))

    user = session.restore()

    assert user.email == buyer.user.email
    assert session.loading is False
    assert events == [SIGNED_IN]


def test_restore_with_stale_token_forgets_it(new_client, tmp_path):
    token_file = tmp_path / "session"
    token_file.write_text("stale-token")
    session = AuthSession(new_client(), storage_path=str(token_file))

    assert session.restore() is None
    assert session.loading is False
    assert not token_file.exists()


def test_restore_gives_up_when_backend_does_not_answer(tmp_path):
    token_file = tmp_path / "session"
    token_file.write_text("some-token")
    session = AuthSession(BackendClient("http://testserver", http=DeadHttp()), storage_path=str(token_file))

    assert session.restore(timeout=0.1) is None
    assert session.loading is False
    assert token_file.exists()


class StalledHttp:
    """Transport that holds every request open until released."""

    def __init__(self):
        self.released = threading.Event()

    def request(self, method, url, **kwargs):
        self.released.wait(5)
        raise requests.exceptions.ReadTimeout("server stopped sending")


def test_restore_is_bounded_by_wall_clock_time(tmp_path):
    token_file = tmp_path / "session"
    token_file.write_text("some-token")
    stalled = StalledHttp()
    session = AuthSession(BackendClient("http://testserver", http=stalled), storage_path=str(token_file))

    started = time.monotonic()
    try:
        assert session.restore(timeout=0.2) is None
        elapsed = time.monotonic() - started
    finally:
        stalled.released.set()

    assert elapsed < 2
    assert session.loading is False
    assert session.user is None
    assert token_file.exists()


def test_restore_without_token_stops_loading(new_client):
    session = AuthSession(new_client(), storage_path=None)
    assert session.restore() is None
    assert session.loading is False


def test_sign_out_clears_token_file(new_client, tmp_path):
    token_file = tmp_path / "session"
    session = AuthSession(new_client(), storage_path=str(token_file))
    session.sign_up("reader@shop.com", PASSWORD, "Reader", "buyer")
    assert token_file.read_text() == session.client.token

    events = []
    session.subscribe(lambda event, user: events.append((event, user)))
    session.sign_out()

    assert events == [(SIGNED_OUT, None)]
    assert not token_file.exists()
    assert session.client.token is None
    with pytest.raises(NotAuthenticated):
        session.require_user()


def test_capability_checks(buyer, seller):
    assert buyer.require_user().require(Role.BUYER) is buyer.user
    with pytest.raises(NotPermitted):
        buyer.require_user().require(Role.SELLER)
    assert seller.user.is_seller and not seller.user.is_buyer
