from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from blog_platform.database import Base

ROLE_READER = "reader"
ROLE_ADMIN = "admin"
ROLES = (ROLE_READER, ROLE_ADMIN)

BLOG_STATUSES = ("draft", "published", "archived")

# Closed set; listings report a count for every entry, including zeros.
CATEGORIES = (
    "technology",
    "lifestyle",
    "travel",
    "food",
    "health",
    "business",
    "entertainment",
    "sports",
    "politics",
    "education",
    "science",
    "other",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Association table: Blog <-> Tag.  Rows are written by the blog service so
# that the author's tag order survives the round trip.
# ---------------------------------------------------------------------------
blog_tags = Table(
    "blog_tags",
    Base.metadata,
    Column("blog_id", Integer, ForeignKey("blogs.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
    Column("position", Integer, default=0, nullable=False),
)

# ---------------------------------------------------------------------------
# Association table: Blog <-> User likes.  The composite primary key makes
# the likes collection a set: a user appears at most once per blog.
# ---------------------------------------------------------------------------
blog_likes = Table(
    "blog_likes",
    Base.metadata,
    Column("blog_id", Integer, ForeignKey("blogs.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("created_at", DateTime(timezone=True), default=utcnow, nullable=False),
)


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # Always stored lower-cased and stripped; see auth_service.normalize_email.
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=ROLE_READER, nullable=False)
    bio: Mapped[str] = mapped_column(Text, default="", nullable=False)
    avatar: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    # Relationships — lazy="noload" enforces explicit eager loading in services
    blogs: Mapped[List["Blog"]] = relationship(
        "Blog", back_populates="author", lazy="noload"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


# ---------------------------------------------------------------------------
# Tag
# ---------------------------------------------------------------------------
class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)

    blogs: Mapped[List["Blog"]] = relationship(
        "Blog", secondary=blog_tags, back_populates="tags", lazy="noload", viewonly=True
    )


# ---------------------------------------------------------------------------
# Blog
# ---------------------------------------------------------------------------
class Blog(Base):
    __tablename__ = "blogs"

    __table_args__ = (
        # Public feed: active + published, newest first
        Index("ix_blogs_active_status_created_at", "is_active", "status", "created_at"),
        # Author pages and "my blogs"
        Index("ix_blogs_author_id_created_at", "author_id", "created_at"),
        Index("ix_blogs_category", "category"),
        # Popular ranking
        Index("ix_blogs_views", "views"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    excerpt: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="published", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    read_time: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    # Set once at creation; never written from request input.
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )

    # Relationships — all lazy="noload"; services load what they serialise.
    author: Mapped["User"] = relationship("User", back_populates="blogs", lazy="noload")
    comments: Mapped[List["Comment"]] = relationship(
        "Comment", back_populates="blog", lazy="noload"
    )
    tags: Mapped[List["Tag"]] = relationship(
        "Tag",
        secondary=blog_tags,
        back_populates="blogs",
        lazy="noload",
        viewonly=True,
        order_by=blog_tags.c.position,
    )
    likes: Mapped[List["User"]] = relationship(
        "User",
        secondary=blog_likes,
        lazy="noload",
        viewonly=True,
        order_by=blog_likes.c.created_at,
    )


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    __table_args__ = (
        Index("ix_comments_blog_id_created_at", "blog_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text: Mapped[str] = mapped_column(String(500), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    blog_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("blogs.id"), nullable=False
    )

    user: Mapped["User"] = relationship("User", lazy="noload")
    blog: Mapped["Blog"] = relationship("Blog", back_populates="comments", lazy="noload")
