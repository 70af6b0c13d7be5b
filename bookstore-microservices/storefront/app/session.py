# In file: bookstore-microservices/storefront/app/session.py

import threading
from pathlib import Path
from typing import Callable, List, Optional

from .backend import BackendClient
from .config import SESSION_FILE, SESSION_RESTORE_TIMEOUT
from .errors import BackendUnavailable, NotAuthenticated, StorefrontError, ValidationFailed
from .models import Identity, Role

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
USER_UPDATED = "USER_UPDATED"

Listener = Callable[[str, Optional[Identity]], None]


class AuthSession:
    """
    Holds the signed-in identity and hands it to every component that needs it.
    - Components receive the session explicitly and call `require_user()`.
    - Interested parties register with `subscribe()` to hear about sign-in,
      sign-out and profile refreshes.
    """

    def __init__(self, client: BackendClient, storage_path: Optional[str] = SESSION_FILE):
        self.client = client
        self.storage_path = Path(storage_path) if storage_path else None
        self.user: Optional[Identity] = None
        self.loading = True
        self._listeners: List[Listener] = []

    # --- Change notification ---
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registers a listener and returns the function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str):
        print(f" [x] Auth state changed: {event} ({self.user.email if self.user else 'no user'})")
        for listener in list(self._listeners):
            listener(event, self.user)

    # --- Identity access ---
    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def require_user(self) -> Identity:
        if self.user is None:
            raise NotAuthenticated()
        return self.user

    # --- Token storage ---
    def _read_token(self) -> Optional[str]:
        if self.storage_path and self.storage_path.exists():
            return self.storage_path.read_text().strip() or None
        return None

    def _write_token(self, token: Optional[str]):
        self.client.token = token
        if not self.storage_path:
            return
        if token:
            self.storage_path.write_text(token)
        elif self.storage_path.exists():
            self.storage_path.unlink()

    def _start(self, payload: dict) -> Identity:
        self._write_token(payload["access_token"])
        self.user = Identity(**payload["user"])
        self.loading = False
        self._emit(SIGNED_IN)
        return self.user

    # --- Operations ---
    def restore(self, timeout: float = SESSION_RESTORE_TIMEOUT) -> Optional[Identity]:
        """
        Picks up a saved session at start-up.
        The whole profile read is bounded by `timeout` seconds of wall-clock time;
        if it has not finished by then the session stops loading with no user
        and keeps the saved token for the next start.
        """
        token = self._read_token() or self.client.token
        if not token:
            self.loading = False
            return None

        self.client.token = token
        outcome = {}

        def read_profile():
            try:
                outcome["user"] = Identity(**self.client.get_user(timeout=timeout))
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=read_profile, daemon=True)
        worker.start()
        worker.join(timeout)
        self.loading = False
        self.user = None

        if worker.is_alive():
            print(f"Session check did not finish within {timeout}s, continuing signed out.")
            return None
        error = outcome.get("error")
        if isinstance(error, NotAuthenticated):
            print("Saved session is no longer valid, signing out locally.")
            self._write_token(None)
            return None
        if isinstance(error, BackendUnavailable):
            print(f"Error getting current user: {error}")
            return None
        if error is not None:
            raise error

        self.user = outcome["user"]
        self._emit(SIGNED_IN)
        return self.user

    def sign_up(self, email: str, password: str, name: str, role: str) -> Identity:
        email, name, role = (email or "").strip(), (name or "").strip(), (role or "").strip().lower()
        if not email or not password or not name:
            raise ValidationFailed("Please fill in all fields")
        if len(password) < 6:
            raise ValidationFailed("Password must be at least 6 characters")
        if role not in (Role.BUYER.value, Role.SELLER.value):
            raise ValidationFailed("Please choose to register as a buyer or a seller")
        return self._start(self.client.sign_up(email, password, name, role))

    def sign_in(self, email: str, password: str) -> Identity:
        email = (email or "").strip()
        if not email or not password:
            raise ValidationFailed("Please fill in all fields")
        return self._start(self.client.sign_in(email, password))

    def refresh(self) -> Optional[Identity]:
        """Re-reads the profile for the current token."""
        self.require_user()
        self.user = Identity(**self.client.get_user())
        self._emit(USER_UPDATED)
        return self.user

    def sign_out(self):
        """Signs out locally even if the backend cannot be told about it."""
        if self.client.token:
            try:
                self.client.sign_out()
            except StorefrontError as e:
                print(f"Error signing out on the backend: {e}")
        self._write_token(None)
        self.user = None
        self._emit(SIGNED_OUT)
