"""
Authorization rules.

Pure predicates over (actor, resource).  They never raise and never touch
the database; callers translate ``False`` into ``Forbidden`` (or, for the
self-deactivation guard, ``SelfDeletionError``).  Every permission check in
the services goes through one of these functions.

``actor`` is the authenticated ``User`` or ``None`` for anonymous requests.
"""
from blog_platform.models import Blog, Comment, User


def is_admin(actor: User | None) -> bool:
    return actor is not None and actor.is_active and actor.is_admin


def can_modify_blog(actor: User | None, blog: Blog) -> bool:
    if actor is None:
        return False
    return actor.id == blog.author_id or is_admin(actor)


def can_delete_comment(actor: User | None, comment: Comment) -> bool:
    if actor is None:
        return False
    return actor.id == comment.user_id or is_admin(actor)


def can_access_admin_area(actor: User | None) -> bool:
    return is_admin(actor)


def can_delete_self(actor: User | None, target_user_id: int) -> bool:
    """False when *actor* is trying to deactivate their own account."""
    if actor is None:
        return False
    return actor.id != target_user_id
