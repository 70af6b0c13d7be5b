import os

# Token signing settings.
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))

ROLES = ("buyer", "seller")
ORDER_STATUSES = ("Pending", "Shipped", "Delivered", "Cancelled")

# "strict" only allows the forward moves below; "unrestricted" allows any status from any status.
ORDER_STATUS_TRANSITIONS = os.getenv("ORDER_STATUS_TRANSITIONS", "strict").strip().lower()

STRICT_TRANSITIONS = {
    "Pending": {"Shipped", "Cancelled"},
    "Shipped": {"Delivered", "Cancelled"},
    "Delivered": set(),
    "Cancelled": set(),
}


def is_transition_allowed(current: str, new: str, mode: str = None) -> bool:
    mode = mode or ORDER_STATUS_TRANSITIONS
    if new not in ORDER_STATUSES:
        return False
    if current == new or mode == "unrestricted":
        return True
    return new in STRICT_TRANSITIONS.get(current, set())
