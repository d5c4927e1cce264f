from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

# --- auth / users

class PermissionsSchema(BaseModel):
    can_access_courses: bool = True
    can_take_exams: bool = True
    can_download_certificates: bool = True
    class Config: from_attributes = True

class PermissionsUpdate(BaseModel):
    can_access_courses: bool | None = None
    can_take_exams: bool | None = None
    can_download_certificates: bool | None = None

class UserOut(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: Literal["user", "admin"]
    status: Literal["active", "invited", "inactive"]
    permissions: PermissionsSchema
    username: str | None = None
    company: str | None = None
    phone: str | None = None
    title: str | None = None
    avatar: str | None = None
    linkedin: str | None = None
    instagram: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    class Config: from_attributes = True

class LoginReq(BaseModel):
    email: EmailStr
    password: str

class TokenResp(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut

class AcceptInvitationReq(BaseModel):
    email: EmailStr
    invitation_code: str
    password: str
    confirm_password: str

class ForgotPasswordReq(BaseModel):
    email: EmailStr

class ForgotPasswordResp(BaseModel):
    message: str
    reset_token: str | None = None

class ResetPasswordReq(BaseModel):
    token: str
    password: str
    confirm_password: str

class MessageResp(BaseModel):
    message: str

class InviteReq(BaseModel):
    email: EmailStr
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    company: str | None = None
    phone: str | None = None
    role: Literal["user", "admin"] = "user"
    permissions: PermissionsSchema = Field(default_factory=PermissionsSchema)

class InviteResp(BaseModel):
    user: UserOut
    invitation_code: str
    invitation_link: str
    expires_at: datetime

class UserUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    company: str | None = None
    phone: str | None = None
    title: str | None = None
    avatar: str | None = None
    linkedin: str | None = None
    instagram: str | None = None
    role: Literal["user", "admin"] | None = None
    status: Literal["active", "invited", "inactive"] | None = None
    permissions: PermissionsUpdate | None = None

class ChangePasswordReq(BaseModel):
    current_password: str | None = None
    new_password: str
    confirm_password: str | None = None

class GeneratedPasswordResp(BaseModel):
    password: str

# --- courses

class QuestionSchema(BaseModel):
    question: str
    answers: list[str] = Field(min_length=2)
    correct_answer: int = Field(ge=0)

class MeetingSchema(BaseModel):
    type: Literal["teams", "zoom", "meet"]
    url: str
    class Config: from_attributes = True

class VideoSchema(BaseModel):
    type: Literal["youtube", "vimeo", "loom"]
    url: str
    class Config: from_attributes = True

class DocumentSchema(BaseModel):
    id: str
    name: str
    url: str
    type: str
    size: int | None = None
    uploaded_at: datetime | None = None
    class Config: from_attributes = True

class MilestoneIn(BaseModel):
    id: str | None = None
    title: str
    description: str = ""
    type: Literal["text", "questionary"] = "text"
    enabled: bool = True
    admin_only: bool = False
    questions: list[QuestionSchema] = []

class ChapterIn(BaseModel):
    id: str | None = None
    title: str
    description: str = ""
    duration: int = Field(0, ge=0)
    start_date: date
    start_time: str = Field("09:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    meeting: MeetingSchema | None = None
    video: VideoSchema | None = None
    documents: list[DocumentSchema] = []
    documentation_url: str | None = None
    milestones: list[MilestoneIn] = []

class CertificateValiditySchema(BaseModel):
    months: int = Field(12, ge=0)
    renewable: bool = False
    requires_assessment: bool = False
    class Config: from_attributes = True

class InstructorSchema(BaseModel):
    id: str
    name: str
    avatar: str | None = None
    class Config: from_attributes = True

class CourseCreate(BaseModel):
    title: str
    description: str = ""
    status: Literal["draft", "active", "inactive"] = "draft"
    start_date: date
    duration: int = Field(0, ge=0)
    chapters: list[ChapterIn] = []
    certificate_validity: CertificateValiditySchema = Field(default_factory=CertificateValiditySchema)
    instructor: InstructorSchema
    target_users: list[str] = []
    image: str | None = None

class CourseUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    status: Literal["draft", "active", "inactive"] | None = None
    start_date: date | None = None
    duration: int | None = Field(None, ge=0)
    chapters: list[ChapterIn] | None = None
    certificate_validity: CertificateValiditySchema | None = None
    instructor: InstructorSchema | None = None
    target_users: list[str] | None = None
    image: str | None = None

class QuestionOut(BaseModel):
    question: str
    answers: list[str]
    correct_answer: int | None = None
    class Config: from_attributes = True

class MilestoneOut(BaseModel):
    id: str
    title: str
    description: str
    type: Literal["text", "questionary"]
    enabled: bool
    admin_only: bool
    questions: list[QuestionOut]
    completed: bool
    completed_at: datetime | None = None
    class Config: from_attributes = True

class ChapterOut(BaseModel):
    id: str
    title: str
    description: str
    duration: int
    start_date: date
    start_time: str
    order: int
    meeting: MeetingSchema | None = None
    video: VideoSchema | None = None
    documents: list[DocumentSchema]
    documentation_url: str | None = None
    milestones: list[MilestoneOut]
    available: bool = False
    complete: bool = False
    class Config: from_attributes = True

class CourseOut(BaseModel):
    id: str
    title: str
    description: str
    status: Literal["draft", "active", "inactive"]
    start_date: date
    duration: int
    chapters: list[ChapterOut]
    enrolled_count: int
    certificate_validity: CertificateValiditySchema
    instructor: InstructorSchema
    target_users: list[str]
    image: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    class Config: from_attributes = True

class CourseViewOut(CourseOut):
    enrolled_at: datetime | None = None
    completed_at: datetime | None = None
    progress: int = 0
    is_complete: bool = False
    certificate_valid: bool = False
    version: int | None = None

class CatalogOut(BaseModel):
    in_progress: list[CourseViewOut]
    available: list[CourseViewOut]
    finished: list[CourseViewOut]

class CompleteMilestoneReq(BaseModel):
    answers: list[int] | None = None
    expected_version: int | None = None

class ActivityOut(BaseModel):
    id: str
    type: str
    timestamp: datetime
    course_id: str
    course_name: str
    chapter_id: str | None = None
    chapter_name: str | None = None
    milestone_id: str | None = None
    milestone_name: str | None = None
    message: str = ""
    class Config: from_attributes = True

class CompleteMilestoneResp(BaseModel):
    course: CourseViewOut
    activities: list[ActivityOut]

class CertificateOut(BaseModel):
    course_id: str
    course_title: str
    student_name: str
    instructor_name: str
    organization: str
    completed_at: datetime
    valid_until: datetime
    is_valid: bool
    share_url: str
    class Config: from_attributes = True

# --- notifications / dashboard

class NotificationOut(BaseModel):
    id: str
    type: str
    title: str
    message: str
    timestamp: datetime
    course_id: str | None = None
    course_name: str | None = None
    chapter_id: str | None = None
    chapter_name: str | None = None
    is_read: bool
    expires_at: datetime | None = None
    class Config: from_attributes = True

class NotificationListOut(BaseModel):
    items: list[NotificationOut]
    unread: int

class UpcomingChapterOut(BaseModel):
    course_id: str
    course_title: str
    chapter_id: str
    chapter_title: str
    start_date: date
    start_time: str
    duration: int
    meeting_url: str | None = None

class DashboardOut(BaseModel):
    active_courses: int
    valid_certificates: int
    study_minutes: int
    upcoming: list[UpcomingChapterOut]
