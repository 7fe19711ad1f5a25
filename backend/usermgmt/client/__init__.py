"""Client-side helpers: CSRF token management and the JSON API client."""

from usermgmt.client.api import ApiClient
from usermgmt.client.csrf import CsrfFetchState, CsrfTokenManager

__all__ = ["ApiClient", "CsrfFetchState", "CsrfTokenManager"]
