"""Process-wide record store database."""

from functools import lru_cache

from .backends import DatabaseBackend, create_backend


@lru_cache
def get_database() -> DatabaseBackend:
    """Backend for ``DATABASE_URL``, created once per process."""
    from hireflow.config import get_settings

    settings = get_settings()
    return create_backend(settings.database_url, busy_timeout=settings.database_busy_timeout)


def reset_database() -> None:
    """Drop the cached backend so the next call re-reads settings."""
    get_database.cache_clear()
