"""Database session dependency."""

from collections.abc import Generator

from sqlalchemy.orm import Session

from storefront.db.session import get_db


def get_session() -> Generator[Session, None, None]:
    """Request-scoped session; committed on success, rolled back on error.

    Tests replace this through ``app.dependency_overrides``.
    """
    yield from get_db()
