from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from blog_platform.config import Settings, get_settings
from blog_platform.database import get_db
from blog_platform.dependencies import get_current_user, get_image_host
from blog_platform.images import ImageHost
from blog_platform.models import User
from blog_platform.schemas import (
    ImageUpload,
    LoginRequest,
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    envelope,
)
from blog_platform.security import cookie_options, create_access_token
from blog_platform.services import auth_service
from blog_platform.services.serializers import user_to_dict

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _token_response(response: Response, user: User, config: Settings) -> dict:
    """Issue a session token as both the response body and an HTTP-only cookie."""
    token = create_access_token(user.id, config)
    response.set_cookie(value=token, **cookie_options(config))
    return envelope({"user": user_to_dict(user), "token": token})


@router.post("/register", status_code=201)
async def register(
    data: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    config: Settings = Depends(get_settings),
):
    user = await auth_service.register(db, data, config)
    return _token_response(response, user, config)


@router.post("/login")
async def login(
    data: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    config: Settings = Depends(get_settings),
):
    user = await auth_service.login(db, data)
    return _token_response(response, user, config)


@router.post("/admin-login")
async def admin_login(
    data: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    config: Settings = Depends(get_settings),
):
    user = await auth_service.login(db, data, admin_only=True)
    return _token_response(response, user, config)


@router.post("/logout")
async def logout(
    response: Response,
    user: User = Depends(get_current_user),
    config: Settings = Depends(get_settings),
):
    response.delete_cookie(config.COOKIE_NAME, httponly=True)
    return envelope(message="User logged out successfully")


@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return envelope({"user": user_to_dict(user)})


@router.put("/profile")
async def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await auth_service.update_profile(db, user, data)
    return envelope({"user": user_to_dict(user)})


@router.put("/password")
async def change_password(
    data: PasswordChange,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    config: Settings = Depends(get_settings),
):
    await auth_service.change_password(db, user, data, config)
    return envelope(message="Password changed successfully")


@router.post("/avatar")
async def upload_avatar(
    data: ImageUpload,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    images: ImageHost = Depends(get_image_host),
):
    user = await auth_service.set_avatar(db, user, data.image, images)
    return envelope({"user": user_to_dict(user)})
