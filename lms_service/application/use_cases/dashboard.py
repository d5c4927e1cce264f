from dataclasses import dataclass
from datetime import datetime

from .enrollment import ProgressEngine
from ...domain.entities import Chapter, CourseView, User
from ...domain.progress import is_certification_valid, is_chapter_complete, is_course_complete, utcnow


@dataclass
class UpcomingChapter:
    course_id: str
    course_title: str
    chapter: Chapter


@dataclass
class DashboardSummary:
    active_courses: int
    valid_certificates: int
    study_minutes: int
    upcoming: list[UpcomingChapter]


def _in_progress(view: CourseView) -> bool:
    return (
        view.enrolled_at is not None
        and not is_course_complete(view.course)
        and view.course.status == "active"
    )


def summarize(engine: ProgressEngine, user: User, now: datetime | None = None) -> DashboardSummary:
    now = now or utcnow()
    today = now.date()
    enrolled = [v for v in engine.course_views(user) if v.enrolled_at is not None]

    active = sum(1 for v in enrolled if _in_progress(v))
    certificates = 0
    if user.permissions.can_download_certificates:
        certificates = sum(
            1 for v in enrolled
            if is_course_complete(v.course) and is_certification_valid(v.course, now)
        )
    minutes = sum(
        ch.duration for v in enrolled for ch in v.course.chapters if is_chapter_complete(ch)
    )
    upcoming = [
        UpcomingChapter(course_id=v.course.id, course_title=v.course.title, chapter=ch)
        for v in enrolled if _in_progress(v)
        for ch in v.course.chapters
        if ch.start_date >= today and not is_chapter_complete(ch)
    ]
    upcoming.sort(key=lambda item: (item.chapter.start_date, item.chapter.start_time))
    return DashboardSummary(
        active_courses=active,
        valid_certificates=certificates,
        study_minutes=minutes,
        upcoming=upcoming,
    )
