"""Authentication module."""
from .google import get_google_user_info, verify_google_token

__all__ = [
    "get_google_user_info",
    "verify_google_token",
]
