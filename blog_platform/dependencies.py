from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_platform.config import Settings, get_settings
from blog_platform.database import get_db
from blog_platform.errors import Forbidden, Unauthenticated
from blog_platform.images import ImageHost
from blog_platform.models import User
from blog_platform.permissions import can_access_admin_area
from blog_platform.security import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates pagination
    query parameters.

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    limit:
        Number of items per page; ``settings.DEFAULT_PAGE_SIZE`` when
        omitted, clamped to ``settings.MAX_PAGE_SIZE`` otherwise.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        limit: int | None = Query(None, ge=1, le=100, description="Items per page (max 100)."),
        config: Settings = Depends(get_settings),
    ) -> None:
        self.page = page
        # The query schema caps limit at 100; MAX_PAGE_SIZE can only lower
        # that ceiling, so tightening it is a settings change alone.
        self.limit = min(limit or config.DEFAULT_PAGE_SIZE, config.MAX_PAGE_SIZE)


def get_image_host(config: Settings = Depends(get_settings)) -> ImageHost:
    return ImageHost.from_settings(config)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    config: Settings = Depends(get_settings),
) -> User:
    """
    Resolve the session (bearer token, else the cookie) to an active
    ``User``.  Missing, invalid or expired tokens and tokens belonging to
    a deactivated account raise ``Unauthenticated``.
    """
    if credentials is not None and credentials.credentials:
        token = credentials.credentials
    else:
        token = request.cookies.get(config.COOKIE_NAME)
    if not token:
        raise Unauthenticated()

    user_id = decode_access_token(token, config)
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None or not user.is_active:
        raise Unauthenticated("User not found or account deactivated")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not can_access_admin_area(user):
        raise Forbidden("Access denied. Admin privileges required.")
    return user
