from fastapi import APIRouter, Depends, Query, Response, status

from ..authz import get_current_user
from ..deps import get_activity_log
from ..presenters import activity_out
from ..schemas import ActivityOut
from ....application.use_cases.activities import ActivityLog
from ....domain.entities import User

router = APIRouter(prefix="/api/activities", tags=["activities"])


@router.get("", response_model=list[ActivityOut])
def list_activities(user: User = Depends(get_current_user),
                    log: ActivityLog = Depends(get_activity_log),
                    limit: int = Query(50, ge=1, le=500),
                    offset: int = Query(0, ge=0)):
    entries = log.entries(user.id)[offset:offset + limit]
    return [activity_out(a) for a in entries]


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def reset_activities(user: User = Depends(get_current_user), log: ActivityLog = Depends(get_activity_log)):
    log.reset(user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
