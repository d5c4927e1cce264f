from fastapi import APIRouter, Depends, Response, status

from ..authz import get_current_user
from ..deps import get_notification_center
from ..schemas import NotificationListOut, NotificationOut
from ....application.use_cases.notifications import NotificationCenter
from ....domain.entities import User

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _listing(center: NotificationCenter, user: User) -> NotificationListOut:
    items = center.entries(user.id)
    return NotificationListOut(
        items=[NotificationOut.model_validate(n) for n in items],
        unread=center.unread_count(user.id),
    )


@router.get("", response_model=NotificationListOut)
def list_notifications(user: User = Depends(get_current_user),
                       center: NotificationCenter = Depends(get_notification_center)):
    return _listing(center, user)


@router.post("/generate", response_model=NotificationListOut)
def generate_notifications(user: User = Depends(get_current_user),
                           center: NotificationCenter = Depends(get_notification_center)):
    center.generate(user)
    return _listing(center, user)


@router.post("/read-all", response_model=NotificationListOut)
def mark_all_read(user: User = Depends(get_current_user),
                  center: NotificationCenter = Depends(get_notification_center)):
    center.mark_all_read(user.id)
    return _listing(center, user)


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: str, user: User = Depends(get_current_user),
              center: NotificationCenter = Depends(get_notification_center)):
    return NotificationOut.model_validate(center.mark_read(user.id, notification_id))


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_notifications(user: User = Depends(get_current_user),
                        center: NotificationCenter = Depends(get_notification_center)):
    center.clear_all(user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
