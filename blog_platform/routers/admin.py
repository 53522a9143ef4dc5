from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from blog_platform.database import get_db
from blog_platform.dependencies import PaginationParams, require_admin
from blog_platform.models import User
from blog_platform.schemas import (
    AdminUserUpdate,
    BlogStatusUpdate,
    CommentStatusUpdate,
    Role,
    envelope,
)
from blog_platform.services import admin_service, user_service

# Every route requires an authenticated admin.
router = APIRouter(prefix="/api/admin", tags=["admin"])

ACTIVE_FILTER = "^(active|inactive)$"


@router.get("/stats")
async def dashboard_stats(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return envelope(await admin_service.dashboard_stats(db, admin))


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@router.get("/users")
async def list_users(
    search: str | None = None,
    role: Role | None = None,
    status: str | None = Query(None, pattern=ACTIVE_FILTER),
    pagination: PaginationParams = Depends(),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    page = await admin_service.list_users(
        db, admin, search=search, role=role, status=status,
        page=pagination.page, limit=pagination.limit,
    )
    return envelope({"users": page.items}, pagination=page.pagination)


@router.get("/users/{user_id}")
async def get_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return envelope(await user_service.get_user_detail(db, user_id))


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    data: AdminUserUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.update_user(db, admin, user_id, data)
    return envelope({"user": user})


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await user_service.deactivate_user(db, admin, user_id)
    return envelope(message="User deleted successfully")


# ---------------------------------------------------------------------------
# Blogs
# ---------------------------------------------------------------------------

@router.get("/blogs")
async def list_blogs(
    search: str | None = None,
    category: str | None = None,
    status: str | None = Query(None, pattern="^(active|inactive|draft|published|archived)$"),
    author: int | None = None,
    pagination: PaginationParams = Depends(),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    page = await admin_service.list_blogs(
        db, admin, search=search, category=category, status=status, author_id=author,
        page=pagination.page, limit=pagination.limit,
    )
    return envelope({"blogs": page.items}, pagination=page.pagination)


@router.put("/blogs/{blog_id}/status")
async def update_blog_status(
    blog_id: int,
    data: BlogStatusUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    blog = await admin_service.update_blog_status(db, admin, blog_id, data)
    return envelope({"blog": blog})


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

@router.get("/comments")
async def list_comments(
    status: str | None = Query(None, pattern=ACTIVE_FILTER),
    blog: int | None = None,
    pagination: PaginationParams = Depends(),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    page = await admin_service.list_comments(
        db, admin, status=status, blog_id=blog,
        page=pagination.page, limit=pagination.limit,
    )
    return envelope({"comments": page.items}, pagination=page.pagination)


@router.put("/comments/{comment_id}")
async def update_comment_status(
    comment_id: int,
    data: CommentStatusUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    comment = await admin_service.update_comment_status(db, admin, comment_id, data)
    return envelope({"comment": comment})
