import os

# Where the hosted backend lives.
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000").rstrip("/")

# Seconds to wait for any single backend call.
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "8"))

# Upper bound on restoring a saved session at start-up.
SESSION_RESTORE_TIMEOUT = float(os.getenv("SESSION_RESTORE_TIMEOUT", "10"))

# Optional file holding the access token between runs.
SESSION_FILE = os.getenv("SESSION_FILE")

BOOKS_PAGE_SIZE = int(os.getenv("BOOKS_PAGE_SIZE", "50"))
SELLER_BOOKS_PAGE_SIZE = int(os.getenv("SELLER_BOOKS_PAGE_SIZE", "25"))
