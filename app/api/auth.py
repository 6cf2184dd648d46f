from fastapi import APIRouter, Depends, status
import structlog

from app.api.deps import get_current_user, get_localizer, get_settings, get_user_store
from app.core.config import Settings
from app.core.errors import UnauthorizedError
from app.core.i18n import Localizer
from app.core.security import create_access_token
from app.models.user import User
from app.schemas.common import envelope
from app.schemas.user import AuthResponse, PasswordChange, UserLogin, UserRegister, UserResponse
from app.services.user_store import UserStore

logger = structlog.get_logger()
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
        registration: UserRegister,
        users: UserStore = Depends(get_user_store),
        settings: Settings = Depends(get_settings),
        _: Localizer = Depends(get_localizer)
):
    """Create an account and return it with a bearer token"""
    user = await users.create(registration)
    token = create_access_token(user.id, settings)
    return envelope(
        AuthResponse(user=UserResponse.from_model(user), token=token),
        _("userRegistered")
    )


@router.post("/login")
async def login(
        credentials: UserLogin,
        users: UserStore = Depends(get_user_store),
        settings: Settings = Depends(get_settings),
        _: Localizer = Depends(get_localizer)
):
    user = await users.authenticate(credentials.username_or_email, credentials.password)
    if user is None:
        logger.info("login_failed", username_or_email=credentials.username_or_email)
        raise UnauthorizedError("invalidCredentials")

    token = create_access_token(user.id, settings)
    logger.info("login_succeeded", user_id=user.id)
    return envelope(
        AuthResponse(user=UserResponse.from_model(user), token=token),
        _("loginSuccessful")
    )


@router.post("/change-password")
async def change_password(
        payload: PasswordChange,
        user: User = Depends(get_current_user),
        users: UserStore = Depends(get_user_store),
        _: Localizer = Depends(get_localizer)
):
    await users.change_password(user, payload.current_password, payload.new_password)
    return envelope(message=_("passwordChanged"))
