from fastapi import APIRouter, Depends, Request

from ..authz import get_current_user
from ..deps import get_directory
from ..ratelimit import limiter
from ..schemas import (
    AcceptInvitationReq,
    ForgotPasswordReq,
    ForgotPasswordResp,
    LoginReq,
    MessageResp,
    ResetPasswordReq,
    TokenResp,
    UserOut,
)
from ....application.use_cases.users import UserDirectory
from ....config import settings
from ....domain.entities import User
from ....infrastructure.security import create_access_token

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _token_for(user: User) -> TokenResp:
    token = create_access_token(sub=user.id, role=user.role)
    return TokenResp(access_token=token, user=UserOut.model_validate(user))


# stricter limit than the default: brute force protection
@router.post("/login", response_model=TokenResp)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login(request: Request, payload: LoginReq, directory: UserDirectory = Depends(get_directory)):
    user = directory.authenticate(payload.email, payload.password)
    return _token_for(user)


@router.post("/accept-invitation", response_model=TokenResp)
def accept_invitation(payload: AcceptInvitationReq, directory: UserDirectory = Depends(get_directory)):
    user = directory.accept_invitation(
        payload.email, payload.invitation_code, payload.password, payload.confirm_password)
    return _token_for(user)


@router.post("/forgot-password", response_model=ForgotPasswordResp)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def forgot_password(request: Request, payload: ForgotPasswordReq,
                    directory: UserDirectory = Depends(get_directory)):
    token = directory.request_password_reset(payload.email)
    return ForgotPasswordResp(
        message="Password reset instructions have been sent",
        reset_token=token if settings.EXPOSE_RESET_TOKENS else None,
    )


@router.post("/reset-password", response_model=MessageResp)
def reset_password(payload: ResetPasswordReq, directory: UserDirectory = Depends(get_directory)):
    directory.reset_password(payload.token, payload.password, payload.confirm_password)
    return MessageResp(message="Password has been reset")


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return UserOut.model_validate(user)
