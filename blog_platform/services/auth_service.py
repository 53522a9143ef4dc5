"""
Auth service — credential store access for the User aggregate.

Emails are normalised (stripped, lower-cased) before every lookup and
write, so two addresses that differ only by case map to the same account.
Token issuance lives in ``blog_platform.security``; the router attaches
the token to the response.
"""
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_platform.cache import cache
from blog_platform.config import Settings
from blog_platform.errors import Conflict, Forbidden, Unauthenticated, ValidationError
from blog_platform.images import AVATAR_OPTIONS, ImageHost
from blog_platform.models import ROLE_READER, User
from blog_platform.permissions import is_admin
from blog_platform.schemas import LoginRequest, PasswordChange, ProfileUpdate, RegisterRequest
from blog_platform.security import hash_password, verify_password


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def ensure_email_available(db: AsyncSession, email: str, *, exclude_user_id: int | None = None) -> None:
    """Raise ``Conflict`` when *email* already belongs to another account (active or not)."""
    existing = await get_user_by_email(db, email)
    if existing is not None and existing.id != exclude_user_id:
        raise Conflict("User already exists with this email")


async def register(db: AsyncSession, data: RegisterRequest, config: Settings) -> User:
    await ensure_email_available(db, data.email)

    user = User(
        name=data.name,
        email=normalize_email(data.email),
        password_hash=hash_password(data.password, config),
        role=ROLE_READER,
        bio=data.bio,
    )
    db.add(user)
    await db.flush()
    return user


async def login(db: AsyncSession, data: LoginRequest, *, admin_only: bool = False) -> User:
    """
    Verify credentials and stamp ``last_login``.

    Deactivated accounts cannot log in.  With *admin_only* a correct
    password on a non-admin account raises ``Forbidden``.
    """
    user = await get_user_by_email(db, data.email)
    if user is None or not verify_password(data.password, user.password_hash):
        raise Unauthenticated("Invalid credentials")
    if not user.is_active:
        raise Unauthenticated("Account has been deactivated. Please contact administrator.")
    if admin_only and not is_admin(user):
        raise Forbidden("Access denied. Admin privileges required.")

    user.last_login = datetime.now(timezone.utc)
    await db.flush()
    return user


async def update_profile(db: AsyncSession, user: User, data: ProfileUpdate) -> User:
    fields = data.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in fields:
        fields["email"] = normalize_email(fields["email"])
        if fields["email"] != user.email:
            await ensure_email_available(db, fields["email"], exclude_user_id=user.id)

    for field, value in fields.items():
        setattr(user, field, value)
    await db.flush()
    if "name" in fields:
        # Listing pages embed the author summary.
        await cache.invalidate_blogs()
    return user


async def change_password(db: AsyncSession, user: User, data: PasswordChange, config: Settings) -> None:
    if not verify_password(data.current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    user.password_hash = hash_password(data.new_password, config)
    await db.flush()


async def set_avatar(db: AsyncSession, user: User, image: str, images: ImageHost) -> User:
    user.avatar = await images.resolve(image, **AVATAR_OPTIONS)
    await db.flush()
    await cache.invalidate_blogs()
    return user
