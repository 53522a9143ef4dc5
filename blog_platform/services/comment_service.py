"""
Comment service — adding and removing comments on a blog.

Removal is a soft delete.  Deleting a comment that is already inactive is
reported as ``AlreadyDeleted`` (a 409), distinct from ``NotFound``, so a
client retrying a delete can treat it as converged rather than failed.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from blog_platform.errors import AlreadyDeleted, Forbidden, NotFound
from blog_platform.models import Blog, Comment, User
from blog_platform.permissions import can_delete_comment
from blog_platform.schemas import CommentCreate
from blog_platform.services.serializers import comment_to_dict


async def add_comment(db: AsyncSession, actor: User, blog_id: int, data: CommentCreate) -> dict:
    """
    Attach a comment by *actor* to an active blog and return it with the
    comment author resolved.  ``data.text`` is already trimmed and
    length-checked by the schema.
    """
    blog = (await db.execute(select(Blog).where(Blog.id == blog_id))).scalar_one_or_none()
    if blog is None or not blog.is_active:
        raise NotFound("Blog not found")

    comment = Comment(text=data.text, user_id=actor.id, blog_id=blog.id)
    db.add(comment)
    await db.flush()

    q = select(Comment).where(Comment.id == comment.id).options(joinedload(Comment.user))
    comment = (await db.execute(q.execution_options(populate_existing=True))).scalar_one()
    return comment_to_dict(comment)


async def delete_comment(db: AsyncSession, actor: User, comment_id: int, *, blog_id: int | None = None) -> None:
    """
    Soft delete a comment as its author or an admin.

    With *blog_id* the comment must belong to that blog, otherwise it is
    reported as not found.
    """
    comment = (await db.execute(select(Comment).where(Comment.id == comment_id))).scalar_one_or_none()
    if comment is None or (blog_id is not None and comment.blog_id != blog_id):
        raise NotFound("Comment not found")
    if not comment.is_active:
        raise AlreadyDeleted("Comment has already been deleted")
    if not can_delete_comment(actor, comment):
        raise Forbidden(
            "Not authorized to delete this comment. Only the comment owner or admin can delete."
        )

    comment.is_active = False
    await db.flush()
