from fastapi import APIRouter, Depends

from ..authz import get_current_user
from ..deps import get_engine
from ..presenters import upcoming_out
from ..schemas import DashboardOut
from ....application.use_cases.dashboard import summarize
from ....application.use_cases.enrollment import ProgressEngine
from ....domain.entities import User

router = APIRouter(prefix="/api/me", tags=["dashboard"])


@router.get("/dashboard", response_model=DashboardOut)
def dashboard(user: User = Depends(get_current_user), engine: ProgressEngine = Depends(get_engine)):
    summary = summarize(engine, user)
    return DashboardOut(
        active_courses=summary.active_courses,
        valid_certificates=summary.valid_certificates,
        study_minutes=summary.study_minutes,
        upcoming=[upcoming_out(item) for item in summary.upcoming],
    )
