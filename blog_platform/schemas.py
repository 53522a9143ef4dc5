import math
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, BeforeValidator, EmailStr, Field, field_validator

from blog_platform.models import BLOG_STATUSES, CATEGORIES, ROLES
from blog_platform.security import MIN_PASSWORD_LENGTH

Category = Literal[CATEGORIES]
BlogStatus = Literal[BLOG_STATUSES]
Role = Literal[ROLES]

TAG_MAX_LENGTH = 30
COMMENT_MAX_LENGTH = 500
CONTENT_MIN_LENGTH = 50


def _split_tags(value):
    """Accept either a list of tags or a comma-separated string."""
    if value is None:
        return value
    if isinstance(value, str):
        value = value.split(",")
    cleaned: list[str] = []
    for tag in value:
        tag = str(tag).strip()
        if not tag or tag in cleaned:
            continue
        if len(tag) > TAG_MAX_LENGTH:
            raise ValueError(f"Tag cannot be more than {TAG_MAX_LENGTH} characters")
        cleaned.append(tag)
    return cleaned


def _non_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


Name = Annotated[str, Field(max_length=100), AfterValidator(_non_blank)]
Bio = Annotated[str, Field(max_length=500)]
Title = Annotated[str, Field(max_length=200), AfterValidator(_non_blank)]
Content = Annotated[str, Field(min_length=CONTENT_MIN_LENGTH)]
Excerpt = Annotated[str, Field(max_length=300)]
Tags = Annotated[list[str], BeforeValidator(_split_tags)]


# --- Auth ---

class RegisterRequest(BaseModel):
    name: Name
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    bio: Bio = ""


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ProfileUpdate(BaseModel):
    name: Name | None = None
    email: EmailStr | None = None
    bio: Bio | None = None


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class ImageUpload(BaseModel):
    image: str = Field(min_length=1)


# --- Blog ---

class BlogCreate(BaseModel):
    title: Title
    content: Content
    category: Category
    excerpt: Excerpt | None = None
    tags: Tags = []
    image: str | None = None
    status: BlogStatus = "published"


class BlogUpdate(BaseModel):
    """Partial update; unset fields are left untouched.  The author is not a field."""

    title: Title | None = None
    content: Content | None = None
    category: Category | None = None
    excerpt: Excerpt | None = None
    tags: Tags | None = None
    image: str | None = None
    status: BlogStatus | None = None


# --- Comment ---

class CommentCreate(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def _trimmed_length(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Comment text is required")
        if len(value) > COMMENT_MAX_LENGTH:
            raise ValueError(f"Comment cannot be more than {COMMENT_MAX_LENGTH} characters")
        return value


# --- Admin ---

class AdminUserUpdate(BaseModel):
    """Admin edit of a user.  The password is not editable here."""

    name: Name | None = None
    email: EmailStr | None = None
    role: Role | None = None
    is_active: bool | None = None
    bio: Bio | None = None


class BlogStatusUpdate(BaseModel):
    status: BlogStatus | None = None
    is_active: bool | None = None


class CommentStatusUpdate(BaseModel):
    is_active: bool


# --- Pagination / envelope ---

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / limit) if total > 0 else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class PaginatedResponse(BaseModel):
    items: list  # Serialised dicts; shape depends on the listing
    pagination: Pagination


def envelope(
    data: Any = None,
    message: str | None = None,
    pagination: Pagination | None = None,
) -> dict:
    """Build the ``{success, data?, message?, pagination?}`` response body."""
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = pagination.model_dump()
    return body
