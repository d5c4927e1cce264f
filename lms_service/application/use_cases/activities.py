import structlog

from ...domain.entities import Activity, ActivityType, Chapter, Course, Milestone
from ...domain.progress import new_id, utcnow
from ...infrastructure.repositories import ActivityRepository
from ...infrastructure.storage import Storage

logger = structlog.get_logger()


class ActivityLog:
    """Append-only, newest-first log of a user's domain events."""

    def __init__(self, storage: Storage):
        self.repo = ActivityRepository(storage)

    def key(self, user_id: str) -> str:
        return self.repo.key(user_id)

    def record(
        self,
        user_id: str,
        type_: ActivityType,
        course: Course,
        chapter: Chapter | None = None,
        milestone: Milestone | None = None,
        now=None,
    ) -> Activity:
        activity = Activity(
            id=new_id(),
            type=type_,
            timestamp=now or utcnow(),
            course_id=course.id,
            course_name=course.title,
            chapter_id=chapter.id if chapter else None,
            chapter_name=chapter.title if chapter else None,
            milestone_id=milestone.id if milestone else None,
            milestone_name=milestone.title if milestone else None,
        )
        self.repo.prepend(user_id, activity)
        return activity

    def entries(self, user_id: str) -> list[Activity]:
        return self.repo.for_user(user_id)

    def reset(self, user_id: str) -> None:
        self.repo.clear(user_id)
        logger.info("activity_log_reset", user_id=user_id)


def format_activity_message(activity: Activity) -> str:
    if activity.type == "enrollment":
        return f'Enrolled in "{activity.course_name}"'
    if activity.type == "unenrollment":
        return f'Unenrolled from "{activity.course_name}"'
    if activity.type == "milestone_completion":
        return f'Completed milestone "{activity.milestone_name}" in {activity.course_name}'
    if activity.type == "chapter_completion":
        return f'Completed chapter "{activity.chapter_name}" in {activity.course_name}'
    if activity.type == "course_completion":
        return f'Completed course "{activity.course_name}"'
    return ""
