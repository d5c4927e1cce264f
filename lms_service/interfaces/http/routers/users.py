from fastapi import APIRouter, Depends, status

from ..authz import get_current_user, require_admin
from ..deps import get_directory
from ..schemas import (
    ChangePasswordReq,
    GeneratedPasswordResp,
    InviteReq,
    InviteResp,
    MessageResp,
    PermissionsUpdate,
    UserOut,
    UserUpdate,
)
from ....application.use_cases.users import UserDirectory
from ....domain.entities import User
from ....domain.errors import Forbidden

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=list[UserOut], dependencies=[Depends(require_admin)])
def list_users(directory: UserDirectory = Depends(get_directory)):
    return [UserOut.model_validate(u) for u in directory.list_users()]


@router.post("/invite", response_model=InviteResp, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(require_admin)])
def invite_user(payload: InviteReq, directory: UserDirectory = Depends(get_directory)):
    user, invitation = directory.invite(payload.model_dump())
    return InviteResp(
        user=UserOut.model_validate(user),
        invitation_code=invitation.code,
        invitation_link=directory.invitation_link(invitation),
        expires_at=invitation.expires_at,
    )


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: str, actor: User = Depends(get_current_user),
             directory: UserDirectory = Depends(get_directory)):
    if actor.id != user_id and not actor.is_admin:
        raise Forbidden("Forbidden")
    return UserOut.model_validate(directory.get(user_id))


@router.put("/{user_id}", response_model=UserOut)
def update_user(user_id: str, payload: UserUpdate, actor: User = Depends(get_current_user),
                directory: UserDirectory = Depends(get_directory)):
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("permissions") is not None:
        changes["permissions"] = {k: v for k, v in changes["permissions"].items() if v is not None}
    return UserOut.model_validate(directory.update_user(actor, user_id, changes))


@router.post("/{user_id}/change-password", response_model=MessageResp)
def change_password(user_id: str, payload: ChangePasswordReq, actor: User = Depends(get_current_user),
                    directory: UserDirectory = Depends(get_directory)):
    directory.change_password(actor, user_id, payload.current_password,
                              payload.new_password, payload.confirm_password)
    return MessageResp(message="Password updated")


@router.post("/{user_id}/toggle-status", response_model=UserOut, dependencies=[Depends(require_admin)])
def toggle_status(user_id: str, directory: UserDirectory = Depends(get_directory)):
    return UserOut.model_validate(directory.toggle_status(user_id))


@router.patch("/{user_id}/permissions", response_model=UserOut, dependencies=[Depends(require_admin)])
def update_permissions(user_id: str, payload: PermissionsUpdate,
                       directory: UserDirectory = Depends(get_directory)):
    return UserOut.model_validate(directory.update_permissions(user_id, payload.model_dump(exclude_none=True)))


@router.post("/{user_id}/reset-password", response_model=GeneratedPasswordResp)
def reset_password(user_id: str, actor: User = Depends(get_current_user),
                   directory: UserDirectory = Depends(get_directory)):
    return GeneratedPasswordResp(password=directory.reset_user_password(actor, user_id))
