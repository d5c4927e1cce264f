from dataclasses import dataclass, field
from datetime import datetime

import structlog

from .activities import ActivityLog
from ...domain.entities import Activity, CourseView, Enrollment, User
from ...domain.errors import Conflict, Forbidden, NotFound, ValidationFailed
from ...domain.progress import (
    answers_are_correct,
    is_available_for_enrollment,
    is_chapter_available,
    is_chapter_complete,
    is_course_complete,
    merge_progress,
    utcnow,
)
from ...infrastructure.locks import KeyedLocks
from ...infrastructure.metrics import completions_total, enrollments_total, unenrollments_total
from ...infrastructure.repositories import CourseRepository, EnrollmentRepository
from ...infrastructure.storage import Storage

logger = structlog.get_logger()


@dataclass
class MilestoneCompletion:
    view: CourseView
    activities: list[Activity] = field(default_factory=list)


@dataclass
class Catalog:
    in_progress: list[CourseView]
    available: list[CourseView]
    finished: list[CourseView]


class ProgressEngine:
    """Enrollment and milestone progress for individual users.

    Every mutation holds the in-process locks of the collections it touches
    and runs inside a storage transaction, so a failure part way leaves the
    stored state exactly as it was before the call.
    """

    def __init__(self, storage: Storage, locks: KeyedLocks):
        self.storage = storage
        self.locks = locks
        self.courses = CourseRepository(storage)
        self.enrollments = EnrollmentRepository(storage)
        self.activities = ActivityLog(storage)

    # --- reads

    def course_views(self, user: User) -> list[CourseView]:
        records = self.enrollments.for_user(user.id)
        return [merge_progress(c, records.get(c.id)) for c in self.courses.all()]

    def course_view(self, user: User, course_id: str) -> CourseView:
        course = self.courses.get(course_id)
        if course is None:
            raise NotFound("Course not found")
        return merge_progress(course, self.enrollments.get(user.id, course_id))

    def catalog(self, user: User, now: datetime | None = None) -> Catalog:
        today = (now or utcnow()).date()
        in_progress, available, finished = [], [], []
        for view in self.course_views(user):
            enrolled = view.enrolled_at is not None
            if enrolled and is_course_complete(view.course):
                finished.append(view)
            elif enrolled:
                in_progress.append(view)
            elif is_available_for_enrollment(view.course, user.id, enrolled, today):
                available.append(view)
        return Catalog(in_progress=in_progress, available=available, finished=finished)

    # --- mutations

    def enroll(self, user: User, course_id: str, now: datetime | None = None) -> CourseView:
        now = now or utcnow()
        keys = (CourseRepository.KEY, self.enrollments.key(user.id), self.activities.key(user.id))
        with self.locks.hold(*keys):
            course = self.courses.get(course_id)
            if course is None:
                raise NotFound("Course not found")
            if self.enrollments.get(user.id, course_id) is not None:
                raise Conflict("Already enrolled in this course")
            if not user.is_admin and not user.permissions.can_access_courses:
                raise Forbidden("User does not have permission to access courses")
            if not user.is_admin and not is_available_for_enrollment(course, user.id, False, now.date()):
                raise Forbidden("Course is not open for enrollment")

            with self.storage.transaction(*keys):
                course.enrolled_count += 1
                course.updated_at = now
                self.courses.update(course)
                enrollment = Enrollment(course_id=course_id, enrolled_at=now)
                self.enrollments.put(user.id, enrollment)
                self.activities.record(user.id, "enrollment", course, now=now)

        enrollments_total.inc()
        logger.info("course_enrolled", user_id=user.id, course_id=course_id,
                    enrolled_count=course.enrolled_count)
        return merge_progress(course, enrollment)

    def unenroll(self, user: User, course_id: str, now: datetime | None = None) -> CourseView:
        """Drop the enrollment and its progress.

        Unenrolling from a course the user is not enrolled in changes nothing
        and records no activity.
        """
        now = now or utcnow()
        keys = (CourseRepository.KEY, self.enrollments.key(user.id), self.activities.key(user.id))
        with self.locks.hold(*keys):
            course = self.courses.get(course_id)
            if course is None:
                raise NotFound("Course not found")
            if self.enrollments.get(user.id, course_id) is None:
                logger.info("unenroll_skipped", user_id=user.id, course_id=course_id)
                return merge_progress(course, None)

            with self.storage.transaction(*keys):
                course.enrolled_count = max(0, course.enrolled_count - 1)
                course.updated_at = now
                self.courses.update(course)
                self.enrollments.remove(user.id, course_id)
                self.activities.record(user.id, "unenrollment", course, now=now)

        unenrollments_total.inc()
        logger.info("course_unenrolled", user_id=user.id, course_id=course_id,
                    enrolled_count=course.enrolled_count)
        return merge_progress(course, None)

    def complete_milestone(
        self,
        user: User,
        course_id: str,
        chapter_id: str,
        milestone_id: str,
        answers: list[int] | None = None,
        expected_version: int | None = None,
        now: datetime | None = None,
    ) -> MilestoneCompletion:
        now = now or utcnow()
        keys = (self.enrollments.key(user.id), self.activities.key(user.id))
        with self.locks.hold(*keys):
            course = self.courses.get(course_id)
            if course is None:
                raise NotFound("Course not found")
            chapter = course.find_chapter(chapter_id)
            if chapter is None:
                raise NotFound("Chapter not found")
            milestone = chapter.find_milestone(milestone_id)
            if milestone is None:
                raise NotFound("Milestone not found")
            enrollment = self.enrollments.get(user.id, course_id)
            if enrollment is None:
                raise NotFound("Not enrolled in this course")

            if expected_version is not None and expected_version != enrollment.version:
                raise Conflict("Progress changed since it was loaded")
            if milestone.admin_only and not user.is_admin:
                raise Forbidden("Only administrators can complete this milestone")
            if not milestone.enabled:
                raise Forbidden("Milestone is not enabled")
            if milestone.type == "questionary" and not user.permissions.can_take_exams:
                raise Forbidden("User does not have permission to take exams")
            if not user.is_admin and not is_chapter_available(chapter, now.date()):
                raise Forbidden("Chapter is not available yet")
            if milestone_id in enrollment.milestones:
                raise Conflict("Milestone already completed")
            if milestone.type == "questionary" and not answers_are_correct(milestone, answers):
                raise ValidationFailed("Not all answers are correct")

            emitted: list[Activity] = []
            with self.storage.transaction(*keys):
                enrollment.milestones[milestone_id] = now
                enrollment.version += 1
                # cascade on the post-update state
                merged = merge_progress(course, enrollment).course
                emitted.append(self.activities.record(
                    user.id, "milestone_completion", course, chapter, milestone, now=now))
                if is_chapter_complete(merged.find_chapter(chapter_id)):
                    emitted.append(self.activities.record(
                        user.id, "chapter_completion", course, chapter, now=now))
                    if is_course_complete(merged):
                        emitted.append(self.activities.record(
                            user.id, "course_completion", course, now=now))
                        enrollment.completed_at = now
                self.enrollments.put(user.id, enrollment)

        for activity in emitted:
            completions_total.labels(level=activity.type.split("_")[0]).inc()
        logger.info("milestone_completed", user_id=user.id, course_id=course_id,
                    chapter_id=chapter_id, milestone_id=milestone_id,
                    events=[a.type for a in emitted])
        return MilestoneCompletion(view=merge_progress(course, enrollment), activities=emitted)
