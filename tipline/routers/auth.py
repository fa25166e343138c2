"""Authentication endpoints: registration, login, password reset and profile."""

import logging
from typing import Any, Dict, Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Response,
    UploadFile,
    status,
)
from pydantic import AliasChoices, BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.config import get_settings
from tipline.db.database import get_db
from tipline.dependencies import require_any_user
from tipline.models.prediction import PREDICTION_CATEGORIES
from tipline.models.user import User
from tipline.responses import user_payload
from tipline.services.email_service import email_service
from tipline.services.otp_store import (
    FORGOT_PASSWORD,
    REGISTER,
    OtpStore,
    expiration_ms,
    generate_otp,
    get_otp_store,
    is_expired,
)
from tipline.services.security import password_hasher, token_service
from tipline.services.storage_service import storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])
settings = get_settings()


class RegisterRequest(BaseModel):
    """Request model for starting a registration."""

    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=1)


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str = Field(min_length=1)


class EmailRequest(BaseModel):
    email: EmailStr


class SocialAuthRequest(BaseModel):
    """Request model for social sign-in; image is the provider's avatar URL."""

    email: EmailStr
    name: str = Field(min_length=1)
    image: str = Field(min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ResetPasswordRequest(BaseModel):
    """Request model for setting a new password after OTP verification."""

    email: EmailStr
    password: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    """Request model for changing the password of a signed-in user."""

    old_password: str = Field(
        min_length=1,
        validation_alias=AliasChoices("oldPassword", "oldPasswoed", "old_password"),
    )
    new_password: str = Field(
        min_length=1,
        validation_alias=AliasChoices("newPassword", "new_password"),
    )


def _otp_response(message: str, otp: str) -> Dict[str, Any]:
    return {
        "success": True,
        "otp": otp if settings.is_development else None,
        "message": message,
    }


def _session_response(user: User, message: str) -> Dict[str, Any]:
    """Login/registration payload with a fresh token."""
    token = token_service.create_token(str(user.id), user.email, user.type)
    return {
        "success": True,
        "message": message,
        "token": token,
        "data": user_payload(user),
        "categoryIncluded": bool(user.category),
    }


async def _find_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


@router.post("/register")
async def register_send_otp(
    request: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    otp_store: OtpStore = Depends(get_otp_store),
) -> Dict[str, Any]:
    """
    Start a registration and email a verification code.

    The pending account (with the password already hashed) lives only in
    the OTP store until the code is verified.

    Raises:
        HTTPException(401): If the email is already registered.
    """
    if await _find_user_by_email(db, request.email):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email already exist",
        )

    otp = generate_otp()
    await otp_store.save(
        REGISTER,
        request.email,
        {
            "name": request.name,
            "email": request.email,
            "password": password_hasher.hash(request.password),
            "otp": otp,
            "expiration": expiration_ms(settings.otp_ttl_seconds),
        },
        settings.otp_ttl_seconds,
    )
    background_tasks.add_task(email_service.send_registration_otp, request.email, otp)

    return _otp_response("please check your email for verification code", otp)


@router.post("/verify-email")
async def register_verify_otp(
    request: VerifyOtpRequest,
    db: AsyncSession = Depends(get_db),
    otp_store: OtpStore = Depends(get_otp_store),
) -> Dict[str, Any]:
    """
    Verify the registration code and create the account.

    Raises:
        HTTPException(400): If the registration is missing, the code is
            wrong, or it has expired.
    """
    record = await otp_store.load(REGISTER, request.email)

    if not record:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="not found! please register again",
        )
    if record.get("otp") != request.otp:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="invalid OTP!",
        )
    if is_expired(record):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="OTP expired!",
        )

    if await _find_user_by_email(db, record["email"]):
        await otp_store.delete(REGISTER, request.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email already exist",
        )

    user = User(
        name=record.get("name"),
        email=record["email"],
        password=record["password"],
    )
    db.add(user)
    await db.commit()
    await otp_store.delete(REGISTER, request.email)
    logger.info(f"Created new user: {user.email}")

    return _session_response(user, "Email verified and account created successfully")


@router.post("/resend-registration-otp")
async def resend_registration_otp(
    request: EmailRequest,
    background_tasks: BackgroundTasks,
    otp_store: OtpStore = Depends(get_otp_store),
) -> Dict[str, Any]:
    """Rotate the code of a pending registration and restart its TTL."""
    record = await otp_store.load(REGISTER, request.email)

    if not record:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Registration not found. Please register again.",
        )

    otp = generate_otp()
    await otp_store.save(
        REGISTER,
        request.email,
        {"otp": otp, "expiration": expiration_ms(settings.otp_ttl_seconds)},
        settings.otp_ttl_seconds,
    )
    background_tasks.add_task(email_service.send_registration_otp, request.email, otp)

    return _otp_response("OTP code resent to your email", otp)


@router.post("/register/social-auth")
async def social_auth(
    request: SocialAuthRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Sign in with a social provider profile.

    Existing users are logged in (200). New users are created with the
    provider's avatar copied into storage (201).
    """
    user = await _find_user_by_email(db, request.email)

    if user:
        return _session_response(user, "User found, login successful!")

    avatar: Optional[str] = None
    try:
        avatar = await storage_service.save_from_url(request.image)
    except ValueError as e:
        logger.warning(f"Social avatar not saved for {request.email}: {e}")

    user = User(email=request.email, name=request.name, avatar_url=avatar)
    db.add(user)
    try:
        await db.commit()
    except Exception:
        await storage_service.remove(avatar)
        raise
    logger.info(f"Created new social user: {user.email}")

    response.status_code = status.HTTP_201_CREATED
    return _session_response(user, "New user created successfully!")


async def _password_login(db: AsyncSession, request: LoginRequest, user_type: str) -> User:
    user = await _find_user_by_email(db, request.email)

    if not user or user.type != user_type:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found" if user_type == "user" else "Credential not match!",
        )
    if not password_hasher.verify(request.password, user.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid password",
        )
    return user


@router.post("/login")
async def users_login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Email/password login for app users."""
    user = await _password_login(db, request, "user")
    return _session_response(user, "Login successful")


@router.post("/admin/login")
async def admin_login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Email/password login for the admin panel."""
    user = await _password_login(db, request, "admin")
    return _session_response(user, "admin Login successful")


@router.post("/forgot-password")
async def forgot_password_send_otp(
    request: EmailRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    otp_store: OtpStore = Depends(get_otp_store),
) -> Dict[str, Any]:
    """
    Start a password reset and email a code.

    The reset permission is only granted once the code is verified.
    """
    user = await _find_user_by_email(db, request.email)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email not found",
        )

    otp = generate_otp()
    await otp_store.save(
        FORGOT_PASSWORD,
        request.email,
        {
            "email": request.email,
            "otp": otp,
            "expiration": expiration_ms(settings.otp_ttl_seconds),
            "userId": str(user.id),
            "permission_to_update_password": "false",
        },
        settings.otp_ttl_seconds,
    )
    background_tasks.add_task(email_service.send_password_reset_otp, request.email, otp)

    return _otp_response("OTP code sent to your email", otp)


@router.post("/verify-forgot-password-otp")
async def forgot_password_verify_otp(
    request: VerifyOtpRequest,
    db: AsyncSession = Depends(get_db),
    otp_store: OtpStore = Depends(get_otp_store),
) -> Dict[str, Any]:
    """Verify the reset code and grant a 10-minute window to set a new password."""
    not_found = "Password reset request not found. Please request again."
    record = await otp_store.load(FORGOT_PASSWORD, request.email)

    if not record:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=not_found)
    if record.get("otp") != request.otp:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid OTP code",
        )
    if is_expired(record):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=not_found)
    if not await _find_user_by_email(db, request.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=not_found)

    await otp_store.save(
        FORGOT_PASSWORD,
        request.email,
        {"permission_to_update_password": "true"},
        settings.otp_verified_ttl_seconds,
    )

    return {
        "success": True,
        "message": "OTP verified. You can now reset your password.",
    }


@router.post("/reset-password")
async def forgot_password_reset(
    request: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
    otp_store: OtpStore = Depends(get_otp_store),
) -> Dict[str, Any]:
    """Set a new password after the reset code has been verified."""
    no_permission = "Permission not found. Please verify OTP again."
    record = await otp_store.load(FORGOT_PASSWORD, request.email)

    if not record or record.get("permission_to_update_password") != "true":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=no_permission)

    user = await _find_user_by_email(db, request.email)
    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=no_permission)

    user.password = password_hasher.hash(request.password)
    await db.commit()
    await otp_store.delete(FORGOT_PASSWORD, request.email)
    logger.info(f"Password reset for {user.email}")

    return {"success": True, "message": "Password reset successfully"}


@router.post("/resend-forgot-password-otp")
async def resend_forgot_password_otp(
    request: EmailRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    otp_store: OtpStore = Depends(get_otp_store),
) -> Dict[str, Any]:
    """Rotate the code of an existing reset request."""
    if not await _find_user_by_email(db, request.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email not found",
        )

    record = await otp_store.load(FORGOT_PASSWORD, request.email)
    if not record:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password reset request not found. Please request again.",
        )

    otp = generate_otp()
    await otp_store.save(
        FORGOT_PASSWORD,
        request.email,
        {
            "otp": otp,
            "expiration": expiration_ms(settings.otp_ttl_seconds),
            "permission_to_update_password": "false",
        },
        settings.otp_ttl_seconds,
    )
    background_tasks.add_task(email_service.send_password_reset_otp, request.email, otp)

    return _otp_response("OTP code resent to your email", otp)


@router.post("/resetpassword")
async def change_password(
    request: ChangePasswordRequest,
    user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Change the password of the signed-in user."""
    if not password_hasher.verify(request.old_password, user.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Old password is incorrect!",
        )

    user.password = password_hasher.hash(request.new_password)
    await db.commit()

    return {
        "success": True,
        "message": "Password reset successfully!",
        "data": {"id": str(user.id), "email": user.email},
    }


@router.patch("/update")
async def update_profile(
    name: Optional[str] = Form(None),
    gender: Optional[str] = Form(None),
    date_of_birth: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Update profile fields and/or the avatar (multipart form).

    Empty fields are ignored. A new avatar replaces the stored one.

    Raises:
        HTTPException(400): If the category is invalid, the avatar is not
            an image, or nothing was provided.
    """
    updates: Dict[str, str] = {
        field: value
        for field, value in (
            ("name", name),
            ("gender", gender),
            ("date_of_birth", date_of_birth),
            ("category", category),
        )
        if value
    }

    if "category" in updates and updates["category"] not in PREDICTION_CATEGORIES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid category. Use: {', '.join(PREDICTION_CATEGORIES)}",
        )

    has_avatar = avatar is not None and bool(avatar.filename)
    if not updates and not has_avatar:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields provided for update",
        )

    new_avatar: Optional[str] = None
    if has_avatar:
        try:
            new_avatar = await storage_service.save_upload(avatar)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    old_avatar = user.avatar_url
    for field, value in updates.items():
        setattr(user, field, value)
    if new_avatar:
        user.avatar_url = new_avatar

    try:
        await db.commit()
    except Exception:
        await storage_service.remove(new_avatar)
        raise

    if new_avatar and old_avatar:
        await storage_service.remove(old_avatar)

    return {
        "success": True,
        "message": "User profile updated successfully",
        "data": user_payload(user),
    }


@router.get("/me")
async def get_profile(user: User = Depends(require_any_user)) -> Dict[str, Any]:
    """Profile of the signed-in user."""
    return {
        "success": True,
        "message": "User profile fetched successfully",
        "data": user_payload(user),
    }


