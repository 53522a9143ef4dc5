"""
Explicit ORM -> dict projections.

Relationships are ``lazy="noload"``, so a reference that the caller did not
load serialises as ``None`` (author) or ``[]`` (tags, likes).  Each read
path decides what it resolves with ``joinedload`` / ``selectinload``.
"""
from datetime import datetime

from blog_platform.models import Blog, Comment, User


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def user_summary(user: User | None, *, with_bio: bool = False, with_email: bool = False) -> dict | None:
    """Public identity embedded in blogs and comments."""
    if user is None:
        return None
    data = {"id": user.id, "name": user.name, "avatar": user.avatar}
    if with_bio:
        data["bio"] = user.bio
    if with_email:
        data["email"] = user.email
    return data


def user_to_dict(user: User) -> dict:
    """Full account view (self or admin).  Never includes the password hash."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "bio": user.bio,
        "avatar": user.avatar,
        "role": user.role,
        "is_active": user.is_active,
        "last_login": _iso(user.last_login),
        "created_at": _iso(user.created_at),
    }


def blog_to_dict(blog: Blog, *, with_content: bool = False, author_email: bool = False) -> dict:
    data = {
        "id": blog.id,
        "title": blog.title,
        "excerpt": blog.excerpt,
        "category": blog.category,
        "tags": [t.name for t in blog.tags],
        "image": blog.image,
        "author_id": blog.author_id,
        "author": user_summary(blog.author, with_email=author_email),
        "likes": [u.id for u in blog.likes],
        "likes_count": len(blog.likes),
        "views": blog.views,
        "status": blog.status,
        "is_active": blog.is_active,
        "read_time": blog.read_time,
        "created_at": _iso(blog.created_at),
        "updated_at": _iso(blog.updated_at),
    }
    if with_content:
        data["content"] = blog.content
    return data


def comment_to_dict(comment: Comment, *, blog_title: str | None = None) -> dict:
    data = {
        "id": comment.id,
        "text": comment.text,
        "blog_id": comment.blog_id,
        "user_id": comment.user_id,
        "user": user_summary(comment.user),
        "is_active": comment.is_active,
        "created_at": _iso(comment.created_at),
    }
    if blog_title is not None:
        data["blog"] = {"id": comment.blog_id, "title": blog_title}
    return data
