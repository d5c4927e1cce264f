from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal, Iterator

Role = Literal["user", "admin"]
UserStatus = Literal["active", "invited", "inactive"]
CourseStatus = Literal["draft", "active", "inactive"]
MilestoneType = Literal["text", "questionary"]
ActivityType = Literal[
    "enrollment",
    "unenrollment",
    "milestone_completion",
    "chapter_completion",
    "course_completion",
]
NotificationType = Literal[
    "upcoming_chapter",
    "expiring_certificate",
    "incomplete_chapter",
    "chapter_available",
]


@dataclass
class Permissions:
    can_access_courses: bool = True
    can_take_exams: bool = True
    can_download_certificates: bool = True


@dataclass
class User:
    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: Role = "user"
    status: UserStatus = "invited"
    permissions: Permissions = field(default_factory=Permissions)
    username: str | None = None
    company: str | None = None
    phone: str | None = None
    title: str | None = None
    avatar: str | None = None
    linkedin: str | None = None
    instagram: str | None = None
    invitation_code: str | None = None
    password_hash: str | None = None
    reset_token: str | None = None
    reset_token_expires_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.email


@dataclass
class Invitation:
    email: str
    code: str
    user_id: str
    expires_at: datetime


@dataclass
class Question:
    question: str
    answers: list[str]
    correct_answer: int


@dataclass
class Milestone:
    id: str
    title: str
    description: str = ""
    type: MilestoneType = "text"
    enabled: bool = True
    admin_only: bool = False
    questions: list[Question] = field(default_factory=list)
    completed: bool = False
    completed_at: datetime | None = None


@dataclass
class Meeting:
    type: Literal["teams", "zoom", "meet"]
    url: str


@dataclass
class Video:
    type: Literal["youtube", "vimeo", "loom"]
    url: str


@dataclass
class Document:
    id: str
    name: str
    url: str
    type: str
    size: int | None = None
    uploaded_at: datetime | None = None


@dataclass
class Chapter:
    id: str
    title: str
    start_date: date
    start_time: str = "09:00"
    description: str = ""
    duration: int = 0  # minutes
    order: int = 0
    meeting: Meeting | None = None
    video: Video | None = None
    documents: list[Document] = field(default_factory=list)
    documentation_url: str | None = None
    milestones: list[Milestone] = field(default_factory=list)

    def find_milestone(self, milestone_id: str) -> Milestone | None:
        return next((m for m in self.milestones if m.id == milestone_id), None)


@dataclass
class CertificateValidity:
    months: int = 12
    renewable: bool = False
    requires_assessment: bool = False


@dataclass
class Instructor:
    id: str
    name: str
    avatar: str | None = None


@dataclass
class Course:
    id: str
    title: str
    start_date: date
    instructor: Instructor
    description: str = ""
    status: CourseStatus = "draft"
    duration: int = 0  # minutes
    chapters: list[Chapter] = field(default_factory=list)
    enrolled_count: int = 0
    certificate_validity: CertificateValidity = field(default_factory=CertificateValidity)
    target_users: list[str] = field(default_factory=list)
    image: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def find_chapter(self, chapter_id: str) -> Chapter | None:
        return next((ch for ch in self.chapters if ch.id == chapter_id), None)

    def iter_milestones(self) -> Iterator[Milestone]:
        for chapter in self.chapters:
            yield from chapter.milestones


@dataclass
class Enrollment:
    course_id: str
    enrolled_at: datetime
    completed_at: datetime | None = None
    # milestone id -> completion time
    milestones: dict[str, datetime] = field(default_factory=dict)
    version: int = 0


@dataclass
class CourseView:
    """A course as one user sees it: shared definition plus that user's progress."""

    course: Course
    enrolled_at: datetime | None = None
    completed_at: datetime | None = None
    version: int | None = None


@dataclass
class Activity:
    id: str
    type: ActivityType
    timestamp: datetime
    course_id: str
    course_name: str
    chapter_id: str | None = None
    chapter_name: str | None = None
    milestone_id: str | None = None
    milestone_name: str | None = None


@dataclass
class Notification:
    id: str
    type: NotificationType
    title: str
    message: str
    timestamp: datetime
    course_id: str | None = None
    course_name: str | None = None
    chapter_id: str | None = None
    chapter_name: str | None = None
    is_read: bool = False
    expires_at: datetime | None = None
