"""Configuration for the substitutions client.

Values come from environment variables. A ``.env`` file at the project root
is loaded first when present.

Copyright (c) Bryn Gwalad 2025
"""

import os
from typing import Dict

from dotenv import load_dotenv

# Load environment variables from .env if present
load_dotenv()


def parse_login_shortcuts(raw: str) -> Dict[str, str]:
    """Parse ``username=email`` pairs separated by commas.

    Usernames are lowercased so lookups can be case-insensitive. Entries
    without an ``=`` or with an empty side are ignored.
    """
    shortcuts = {}
    for entry in raw.split(","):
        name, sep, email = entry.partition("=")
        name = name.strip().lower()
        email = email.strip()
        if sep and name and email:
            shortcuts[name] = email
    return shortcuts


# Hosted backend: base URL and the public (anon) key. Security is enforced by
# the backend's row-level policies, so the anon key is safe to hand out.
BACKEND_URL = os.getenv("BACKEND_URL", "").rstrip("/")
BACKEND_ANON_KEY = os.getenv("BACKEND_ANON_KEY", "")
SUBSTITUTIONS_TABLE = os.getenv("SUBSTITUTIONS_TABLE", "code_substitutions")
BACKEND_TIMEOUT = float(os.getenv("BACKEND_TIMEOUT", "10"))

# Username shortcuts for managers: LOGIN_SHORTCUTS="substitutions=team@example.com,..."
# Values must be emails already registered with the auth provider.
LOGIN_SHORTCUTS = parse_login_shortcuts(os.getenv("LOGIN_SHORTCUTS", ""))

# Browser views not seen for this long are dropped along with their session.
CLIENT_IDLE_MINUTES = int(os.getenv("CLIENT_IDLE_MINUTES", "120"))

# Upper bound on live browser views; the least recently used one is dropped first.
CLIENT_MAX_VIEWS = int(os.getenv("CLIENT_MAX_VIEWS", "500"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
