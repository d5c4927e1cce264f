from datetime import datetime

from pydantic import TypeAdapter

from .schemas import ActivityOut, CourseOut, CourseViewOut, UpcomingChapterOut
from ...application.use_cases.activities import format_activity_message
from ...application.use_cases.dashboard import UpcomingChapter
from ...domain.entities import Activity, Course, CourseView, User
from ...domain.progress import (
    is_certification_valid,
    is_chapter_available,
    is_chapter_complete,
    is_course_complete,
    progress_percent,
    utcnow,
)

_course = TypeAdapter(Course)


def _course_payload(course: Course, viewer: User, now: datetime) -> dict:
    data = _course.dump_python(course)
    today = now.date()
    for chapter, raw in zip(course.chapters, data["chapters"]):
        raw["available"] = is_chapter_available(chapter, today)
        raw["complete"] = is_chapter_complete(chapter)
        if not viewer.is_admin:
            # answer keys stay server side
            for milestone in raw["milestones"]:
                for question in milestone["questions"]:
                    question["correct_answer"] = None
    return data


def course_out(course: Course, viewer: User, now: datetime | None = None) -> CourseOut:
    return CourseOut.model_validate(_course_payload(course, viewer, now or utcnow()))


def view_out(view: CourseView, viewer: User, now: datetime | None = None) -> CourseViewOut:
    now = now or utcnow()
    data = _course_payload(view.course, viewer, now)
    enrolled = view.enrolled_at is not None
    data.update(
        enrolled_at=view.enrolled_at,
        completed_at=view.completed_at,
        progress=progress_percent(view.course) if enrolled else 0,
        is_complete=enrolled and is_course_complete(view.course),
        certificate_valid=enrolled and is_certification_valid(view.course, now),
        version=view.version,
    )
    return CourseViewOut.model_validate(data)


def activity_out(activity: Activity) -> ActivityOut:
    out = ActivityOut.model_validate(activity)
    out.message = format_activity_message(activity)
    return out


def upcoming_out(item: UpcomingChapter) -> UpcomingChapterOut:
    chapter = item.chapter
    return UpcomingChapterOut(
        course_id=item.course_id,
        course_title=item.course_title,
        chapter_id=chapter.id,
        chapter_title=chapter.title,
        start_date=chapter.start_date,
        start_time=chapter.start_time,
        duration=chapter.duration,
        meeting_url=chapter.meeting.url if chapter.meeting else None,
    )
