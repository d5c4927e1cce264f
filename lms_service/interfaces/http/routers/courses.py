from fastapi import APIRouter, Depends, Response, status

from ..authz import get_current_user, require_admin
from ..deps import get_catalog, get_engine
from ..presenters import activity_out, course_out, view_out
from ..schemas import (
    CatalogOut,
    CertificateOut,
    CompleteMilestoneReq,
    CompleteMilestoneResp,
    CourseCreate,
    CourseOut,
    CourseUpdate,
    CourseViewOut,
)
from ....application.use_cases.certificates import issue_certificate
from ....application.use_cases.courses import CourseCatalog
from ....application.use_cases.enrollment import ProgressEngine
from ....application.use_cases.ical import calendar_filename, generate_calendar_event
from ....config import settings
from ....domain.entities import CourseView, User
from ....domain.errors import NotFound
from ....domain.progress import utcnow

router = APIRouter(prefix="/api/courses", tags=["courses"])


@router.get("", response_model=list[CourseViewOut])
def list_courses(user: User = Depends(get_current_user), engine: ProgressEngine = Depends(get_engine)):
    now = utcnow()
    if user.is_admin:
        views = engine.course_views(user)
    else:
        catalog = engine.catalog(user, now)
        views = catalog.in_progress + catalog.available + catalog.finished
    return [view_out(v, user, now) for v in views]


@router.get("/catalog", response_model=CatalogOut)
def course_catalog(user: User = Depends(get_current_user), engine: ProgressEngine = Depends(get_engine)):
    now = utcnow()
    catalog = engine.catalog(user, now)
    return CatalogOut(
        in_progress=[view_out(v, user, now) for v in catalog.in_progress],
        available=[view_out(v, user, now) for v in catalog.available],
        finished=[view_out(v, user, now) for v in catalog.finished],
    )


def _visible_view(engine: ProgressEngine, user: User, course_id: str) -> CourseView:
    view = engine.course_view(user, course_id)
    # drafts and closed courses are only visible to admins and enrolled users
    if not user.is_admin and view.enrolled_at is None and view.course.status != "active":
        raise NotFound("Course not found")
    return view


@router.get("/{course_id}", response_model=CourseViewOut)
def get_course(course_id: str, user: User = Depends(get_current_user),
               engine: ProgressEngine = Depends(get_engine)):
    return view_out(_visible_view(engine, user, course_id), user)


# --- admin lifecycle

@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
def create_course(payload: CourseCreate, admin: User = Depends(require_admin),
                  catalog: CourseCatalog = Depends(get_catalog)):
    return course_out(catalog.create(payload.model_dump()), admin)


@router.put("/{course_id}", response_model=CourseOut)
def update_course(course_id: str, payload: CourseUpdate, admin: User = Depends(require_admin),
                  catalog: CourseCatalog = Depends(get_catalog)):
    return course_out(catalog.update(course_id, payload.model_dump(exclude_unset=True)), admin)


@router.post("/{course_id}/activate", response_model=CourseOut)
def activate_course(course_id: str, admin: User = Depends(require_admin),
                    catalog: CourseCatalog = Depends(get_catalog)):
    return course_out(catalog.activate(course_id), admin)


@router.post("/{course_id}/toggle-status", response_model=CourseOut)
def toggle_course_status(course_id: str, admin: User = Depends(require_admin),
                         catalog: CourseCatalog = Depends(get_catalog)):
    return course_out(catalog.toggle_status(course_id), admin)


@router.post("/{course_id}/clone", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
def clone_course(course_id: str, admin: User = Depends(require_admin),
                 catalog: CourseCatalog = Depends(get_catalog)):
    return course_out(catalog.clone(course_id), admin)


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
def delete_course(course_id: str, catalog: CourseCatalog = Depends(get_catalog)):
    catalog.delete(course_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- enrollment and progress

@router.post("/{course_id}/enroll", response_model=CourseViewOut)
def enroll(course_id: str, user: User = Depends(get_current_user), engine: ProgressEngine = Depends(get_engine)):
    return view_out(engine.enroll(user, course_id), user)


@router.post("/{course_id}/unenroll", response_model=CourseViewOut)
def unenroll(course_id: str, user: User = Depends(get_current_user), engine: ProgressEngine = Depends(get_engine)):
    return view_out(engine.unenroll(user, course_id), user)


@router.post("/{course_id}/chapters/{chapter_id}/milestones/{milestone_id}/complete",
             response_model=CompleteMilestoneResp)
def complete_milestone(course_id: str, chapter_id: str, milestone_id: str,
                       payload: CompleteMilestoneReq | None = None,
                       user: User = Depends(get_current_user),
                       engine: ProgressEngine = Depends(get_engine)):
    payload = payload or CompleteMilestoneReq()
    result = engine.complete_milestone(
        user, course_id, chapter_id, milestone_id,
        answers=payload.answers, expected_version=payload.expected_version,
    )
    return CompleteMilestoneResp(
        course=view_out(result.view, user),
        activities=[activity_out(a) for a in result.activities],
    )


# --- documents

@router.get("/{course_id}/certificate", response_model=CertificateOut)
def certificate(course_id: str, user: User = Depends(get_current_user),
                engine: ProgressEngine = Depends(get_engine)):
    cert = issue_certificate(user, engine.course_view(user, course_id),
                             settings.CERTIFICATE_ORGANIZATION, settings.PUBLIC_BASE_URL)
    return CertificateOut.model_validate(cert)


@router.get("/{course_id}/certificate.txt")
def certificate_document(course_id: str, user: User = Depends(get_current_user),
                         engine: ProgressEngine = Depends(get_engine)):
    cert = issue_certificate(user, engine.course_view(user, course_id),
                             settings.CERTIFICATE_ORGANIZATION, settings.PUBLIC_BASE_URL)
    filename = "_".join(cert.course_title.split()) + "_certificate.txt"
    return Response(
        content=cert.document,
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{course_id}/chapters/{chapter_id}/calendar.ics")
def chapter_calendar(course_id: str, chapter_id: str, user: User = Depends(get_current_user),
                     engine: ProgressEngine = Depends(get_engine)):
    course = _visible_view(engine, user, course_id).course
    chapter = course.find_chapter(chapter_id)
    if chapter is None:
        raise NotFound("Chapter not found")
    body = generate_calendar_event(
        title=f"{course.title}: {chapter.title}",
        description=chapter.description,
        start_date=chapter.start_date,
        start_time=chapter.start_time,
        duration_minutes=chapter.duration,
        meeting_url=chapter.meeting.url if chapter.meeting else None,
        uid=chapter.id,
    )
    return Response(
        content=body,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{calendar_filename(chapter.title)}"'},
    )
