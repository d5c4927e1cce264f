"""Derived progress rules.

Completion is never stored on the shared course definition. A user's progress
lives in their :class:`Enrollment` and is merged into a copy of the course
before any of the rules below are evaluated.
"""
import copy
import uuid
from datetime import date, datetime, timezone

from dateutil.relativedelta import relativedelta

from .entities import Chapter, Course, CourseView, Enrollment, Milestone


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_chapter_available(chapter: Chapter, today: date) -> bool:
    return chapter.start_date <= today


def is_chapter_complete(chapter: Chapter) -> bool:
    return all(m.completed for m in chapter.milestones)


def is_course_complete(course: Course) -> bool:
    return all(is_chapter_complete(ch) for ch in course.chapters)


def progress_percent(course: Course) -> int:
    milestones = list(course.iter_milestones())
    if not milestones:
        return 0
    done = sum(1 for m in milestones if m.completed)
    return round(done * 100 / len(milestones))


def latest_completion(course: Course) -> datetime | None:
    """Most recent milestone completion across all chapters."""
    stamps = [m.completed_at for m in course.iter_milestones() if m.completed and m.completed_at]
    return max(stamps) if stamps else None


def add_months(moment: datetime, months: int) -> datetime:
    # calendar months; day clamps to the end of shorter months
    return moment + relativedelta(months=months)


def certificate_valid_until(course: Course) -> datetime | None:
    completed = latest_completion(course)
    if completed is None:
        return None
    return add_months(completed, course.certificate_validity.months)


def is_certification_valid(course: Course, now: datetime | None = None) -> bool:
    valid_until = certificate_valid_until(course)
    if valid_until is None:
        return False
    return valid_until > (now or utcnow())


def is_available_for_enrollment(course: Course, user_id: str, enrolled: bool, today: date) -> bool:
    return (
        course.status == "active"
        and not enrolled
        and (not course.target_users or user_id in course.target_users)
        and course.start_date <= today
    )


def answers_are_correct(milestone: Milestone, answers: list[int] | None) -> bool:
    if not milestone.questions or answers is None:
        return False
    if len(answers) != len(milestone.questions):
        return False
    return all(given == q.correct_answer for given, q in zip(answers, milestone.questions))


def merge_progress(course: Course, enrollment: Enrollment | None) -> CourseView:
    merged = copy.deepcopy(course)
    completions = enrollment.milestones if enrollment else {}
    for milestone in merged.iter_milestones():
        completed_at = completions.get(milestone.id)
        milestone.completed = completed_at is not None
        milestone.completed_at = completed_at
    if enrollment is None:
        return CourseView(course=merged)
    # a stored completion lapses once the course gains unfinished chapters
    completed_at = None
    if is_course_complete(merged):
        completed_at = enrollment.completed_at or latest_completion(merged)
    return CourseView(
        course=merged,
        enrolled_at=enrollment.enrolled_at,
        completed_at=completed_at,
        version=enrollment.version,
    )


def clone_course(source: Course, now: datetime | None = None) -> Course:
    now = now or utcnow()
    clone = copy.deepcopy(source)
    clone.id = new_id()
    clone.title = f"{source.title} (Copy)"
    clone.status = "draft"
    clone.enrolled_count = 0
    clone.created_at = now
    clone.updated_at = now
    for chapter in clone.chapters:
        chapter.id = new_id()
        for milestone in chapter.milestones:
            milestone.id = new_id()
            milestone.completed = False
            milestone.completed_at = None
    return clone
