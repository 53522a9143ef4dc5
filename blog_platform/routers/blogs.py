from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from blog_platform.config import Settings, get_settings
from blog_platform.database import get_db
from blog_platform.dependencies import PaginationParams, get_current_user, get_image_host
from blog_platform.errors import ValidationError
from blog_platform.images import INLINE_OPTIONS, ImageHost, is_data_uri
from blog_platform.models import User
from blog_platform.schemas import BlogCreate, BlogStatus, BlogUpdate, CommentCreate, ImageUpload, envelope
from blog_platform.services import blog_service, comment_service, listing_service

router = APIRouter(prefix="/api/blogs", tags=["blogs"])


# ---------------------------------------------------------------------------
# Public reads
# ---------------------------------------------------------------------------

@router.get("")
async def list_blogs(
    pagination: PaginationParams = Depends(),
    category: str | None = None,
    author: int | None = None,
    tag: str | None = None,
    search: str | None = None,
    sort: str = Query("newest", pattern="^(newest|popular|oldest)$"),
    db: AsyncSession = Depends(get_db),
):
    page = await listing_service.list_blogs(
        db,
        page=pagination.page,
        limit=pagination.limit,
        category=category,
        author_id=author,
        tag=tag,
        search=search,
        sort=sort,
    )
    return envelope({"blogs": page.items}, pagination=page.pagination)


@router.get("/search")
async def search_blogs(
    q: str | None = None,
    category: str | None = None,
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    page = await listing_service.search_blogs(
        db, q, category=category, page=pagination.page, limit=pagination.limit
    )
    return envelope({"blogs": page.items}, pagination=page.pagination)


@router.get("/categories")
async def get_categories(db: AsyncSession = Depends(get_db)):
    return envelope({"categories": await listing_service.get_categories(db)})


@router.get("/user/{user_id}")
async def list_user_blogs(
    user_id: int,
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    page = await listing_service.list_user_blogs(
        db, user_id, page=pagination.page, limit=pagination.limit
    )
    return envelope({"blogs": page.items}, pagination=page.pagination)


@router.get("/my/blogs")
async def list_my_blogs(
    status: BlogStatus | None = None,
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    page = await listing_service.list_my_blogs(
        db, user, status=status, page=pagination.page, limit=pagination.limit
    )
    return envelope({"blogs": page.items}, pagination=page.pagination)


@router.get("/{blog_id}")
async def get_blog(
    blog_id: int,
    db: AsyncSession = Depends(get_db),
    config: Settings = Depends(get_settings),
):
    blog = await blog_service.view_blog(db, blog_id, atomic_counter=config.ATOMIC_COUNTERS)
    return envelope({"blog": blog})


# ---------------------------------------------------------------------------
# Authoring
# ---------------------------------------------------------------------------

@router.post("/upload", status_code=201)
async def upload_inline_image(
    data: ImageUpload,
    user: User = Depends(get_current_user),
    images: ImageHost = Depends(get_image_host),
):
    if not is_data_uri(data.image):
        raise ValidationError("Invalid image payload")
    url = await images.upload(data.image, **INLINE_OPTIONS)
    return envelope({"url": url})


@router.post("", status_code=201)
async def create_blog(
    data: BlogCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    images: ImageHost = Depends(get_image_host),
    config: Settings = Depends(get_settings),
):
    blog = await blog_service.create_blog(db, user, data, images, config.DEFAULT_BLOG_IMAGE)
    return envelope({"blog": blog})


@router.put("/{blog_id}")
async def update_blog(
    blog_id: int,
    data: BlogUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    images: ImageHost = Depends(get_image_host),
):
    blog = await blog_service.update_blog(db, user, blog_id, data, images)
    return envelope({"blog": blog})


@router.delete("/{blog_id}")
async def delete_blog(
    blog_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await blog_service.delete_blog(db, user, blog_id)
    return envelope(message="Blog deleted successfully")


@router.post("/{blog_id}/like")
async def toggle_like(
    blog_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return envelope(await blog_service.toggle_like(db, user, blog_id))


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

@router.post("/{blog_id}/comment", status_code=201)
async def add_comment(
    blog_id: int,
    data: CommentCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.add_comment(db, user, blog_id, data)
    return envelope({"comment": comment})


@router.delete("/{blog_id}/comment/{comment_id}")
async def delete_comment(
    blog_id: int,
    comment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, user, comment_id, blog_id=blog_id)
    return envelope(message="Comment deleted successfully")
