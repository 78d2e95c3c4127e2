"""FastAPI dependencies."""

from functools import lru_cache

from ccpp_api.db.session import get_session_factory
from ccpp_api.settings import get_settings
from ccpp_api.storage.backend import LocalBackend


@lru_cache()
def get_local_backend() -> LocalBackend:
    """Server-side backend; the API always serves from the local store."""
    return LocalBackend(get_session_factory(), get_settings())
