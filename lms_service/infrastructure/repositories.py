from pydantic import TypeAdapter

from .storage import Storage
from ..domain.entities import Activity, Course, Enrollment, Invitation, Notification, User

_courses = TypeAdapter(list[Course])
_users = TypeAdapter(list[User])
_invitations = TypeAdapter(list[Invitation])
_enrollments = TypeAdapter(dict[str, Enrollment])
_activities = TypeAdapter(list[Activity])
_notifications = TypeAdapter(list[Notification])


class CourseRepository:
    KEY = "courses"

    def __init__(self, storage: Storage): self.storage = storage

    def all(self) -> list[Course]:
        return _courses.validate_python(self.storage.get(self.KEY, []))

    def save_all(self, courses: list[Course]) -> None:
        self.storage.set(self.KEY, _courses.dump_python(courses, mode="json"))

    def get(self, course_id: str) -> Course | None:
        return next((c for c in self.all() if c.id == course_id), None)

    def add(self, course: Course) -> Course:
        courses = self.all()
        courses.append(course)
        self.save_all(courses)
        return course

    def update(self, course: Course) -> Course:
        courses = [course if c.id == course.id else c for c in self.all()]
        self.save_all(courses)
        return course

    def remove(self, course_id: str) -> None:
        self.save_all([c for c in self.all() if c.id != course_id])


class UserRepository:
    KEY = "users"

    def __init__(self, storage: Storage): self.storage = storage

    def all(self) -> list[User]:
        return _users.validate_python(self.storage.get(self.KEY, []))

    def save_all(self, users: list[User]) -> None:
        self.storage.set(self.KEY, _users.dump_python(users, mode="json"))

    def get(self, user_id: str) -> User | None:
        return next((u for u in self.all() if u.id == user_id), None)

    def get_by_email(self, email: str) -> User | None:
        email = email.lower()
        return next((u for u in self.all() if u.email.lower() == email), None)

    def add(self, user: User) -> User:
        users = self.all()
        users.append(user)
        self.save_all(users)
        return user

    def update(self, user: User) -> User:
        self.save_all([user if u.id == user.id else u for u in self.all()])
        return user


class InvitationRepository:
    KEY = "invitations"

    def __init__(self, storage: Storage): self.storage = storage

    def all(self) -> list[Invitation]:
        return _invitations.validate_python(self.storage.get(self.KEY, []))

    def add(self, invitation: Invitation) -> None:
        invitations = self.all()
        invitations.append(invitation)
        self.storage.set(self.KEY, _invitations.dump_python(invitations, mode="json"))

    def find(self, email: str, code: str) -> Invitation | None:
        email = email.lower()
        return next((i for i in self.all() if i.email.lower() == email and i.code == code), None)

    def remove(self, email: str, code: str) -> None:
        email = email.lower()
        kept = [i for i in self.all() if not (i.email.lower() == email and i.code == code)]
        self.storage.set(self.KEY, _invitations.dump_python(kept, mode="json"))


class EnrollmentRepository:
    """Per-user map of course id -> enrollment record."""

    PREFIX = "enrollments:"

    def __init__(self, storage: Storage): self.storage = storage

    def key(self, user_id: str) -> str:
        return f"{self.PREFIX}{user_id}"

    def for_user(self, user_id: str) -> dict[str, Enrollment]:
        return _enrollments.validate_python(self.storage.get(self.key(user_id), {}))

    def get(self, user_id: str, course_id: str) -> Enrollment | None:
        return self.for_user(user_id).get(course_id)

    def put(self, user_id: str, enrollment: Enrollment) -> None:
        records = self.for_user(user_id)
        records[enrollment.course_id] = enrollment
        self.storage.set(self.key(user_id), _enrollments.dump_python(records, mode="json"))

    def remove(self, user_id: str, course_id: str) -> None:
        records = self.for_user(user_id)
        records.pop(course_id, None)
        self.storage.set(self.key(user_id), _enrollments.dump_python(records, mode="json"))

    def user_ids(self) -> list[str]:
        return [k[len(self.PREFIX):] for k in self.storage.keys(self.PREFIX)]

    def count_for_course(self, course_id: str) -> int:
        return sum(1 for uid in self.user_ids() if course_id in self.for_user(uid))


class ActivityRepository:
    PREFIX = "activities:"

    def __init__(self, storage: Storage): self.storage = storage

    def key(self, user_id: str) -> str:
        return f"{self.PREFIX}{user_id}"

    def for_user(self, user_id: str) -> list[Activity]:
        return _activities.validate_python(self.storage.get(self.key(user_id), []))

    def prepend(self, user_id: str, activity: Activity) -> None:
        log = self.for_user(user_id)
        log.insert(0, activity)
        self.storage.set(self.key(user_id), _activities.dump_python(log, mode="json"))

    def clear(self, user_id: str) -> None:
        self.storage.set(self.key(user_id), [])


class NotificationRepository:
    PREFIX = "notifications:"

    def __init__(self, storage: Storage): self.storage = storage

    def key(self, user_id: str) -> str:
        return f"{self.PREFIX}{user_id}"

    def for_user(self, user_id: str) -> list[Notification]:
        return _notifications.validate_python(self.storage.get(self.key(user_id), []))

    def save_all(self, user_id: str, notifications: list[Notification]) -> None:
        self.storage.set(self.key(user_id), _notifications.dump_python(notifications, mode="json"))
