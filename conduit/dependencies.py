from fastapi import Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.database import get_db
from conduit.exceptions import UnauthorizedError
from conduit.models import User
from conduit.security import decode_access_token, extract_token
from conduit.services.user_service import get_user_by_id


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

def _parse_int(value, default: int, minimum: int, maximum: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number < minimum:
        return default
    return min(number, maximum)


def resolve_window(limit=None, offset=None) -> tuple[int, int]:
    """
    Turn raw ``limit`` / ``offset`` values into a usable SQL window.

    Missing, non-numeric and negative values fall back to the configured
    defaults rather than failing the request; ``limit`` must be at least
    1 and is clamped to ``settings.MAX_LIMIT``.  ``offset`` is clamped to
    ``settings.MAX_INTEGER`` so the database never sees an out-of-range
    OFFSET.
    """
    resolved_limit = _parse_int(limit, settings.DEFAULT_LIMIT, 1, settings.MAX_LIMIT)
    resolved_offset = _parse_int(offset, settings.DEFAULT_OFFSET, 0, settings.MAX_INTEGER)
    return resolved_limit, resolved_offset


class PaginationParams:
    """
    Reusable FastAPI dependency for ``?limit=&offset=``.

    Both parameters are declared as plain strings so that garbage input
    (``?limit=abc``) degrades to the defaults instead of a 422.
    """

    def __init__(
        self,
        limit: str | None = Query(None, description="Maximum number of articles returned."),
        offset: str | None = Query(None, description="Number of articles to skip."),
    ) -> None:
        self.limit, self.offset = resolve_window(limit, offset)


# ---------------------------------------------------------------------------
# Current user
# ---------------------------------------------------------------------------

async def get_optional_user(
    authorization: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Resolve the caller from the token; anonymous when absent or invalid."""
    token = extract_token(authorization)
    if token is None:
        return None
    user_id = decode_access_token(token)
    if user_id is None:
        return None
    return await get_user_by_id(db, user_id)


async def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise UnauthorizedError("user", "Authentication required")
    return user
