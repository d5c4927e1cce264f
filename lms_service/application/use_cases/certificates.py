from dataclasses import dataclass
from datetime import datetime
from urllib.parse import urlencode

from ...domain.entities import CourseView, User
from ...domain.errors import Forbidden, ValidationFailed
from ...domain.progress import (
    certificate_valid_until,
    is_certification_valid,
    is_course_complete,
    latest_completion,
    utcnow,
)

LINKEDIN_ADD_URL = "https://www.linkedin.com/profile/add"


@dataclass
class Certificate:
    course_id: str
    course_title: str
    student_name: str
    instructor_name: str
    organization: str
    completed_at: datetime
    valid_until: datetime
    is_valid: bool
    share_url: str
    document: str


def linkedin_share_url(course_title: str, organization: str, cert_url: str,
                       issued: datetime, expires: datetime) -> str:
    query = urlencode({
        "startTask": "CERTIFICATION_NAME",
        "name": f"{course_title} Certification",
        "organizationName": organization,
        "certUrl": cert_url,
        "issueDate": f"{issued:%Y%m}",
        "expirationDate": f"{expires:%Y%m}",
    })
    return f"{LINKEDIN_ADD_URL}?{query}"


def render_certificate_text(organization: str, student_name: str, course_title: str,
                            completed_at: datetime, instructor_name: str) -> str:
    lines = [
        organization,
        "",
        "Certificate of Completion",
        "",
        "This is to certify that",
        student_name,
        "has successfully completed the course",
        course_title,
        "",
        f"Completed on {completed_at:%B} {completed_at.day}, {completed_at:%Y}",
        "",
        instructor_name,
        "Instructor",
    ]
    width = max(len(line) for line in lines) + 8
    border = "+" + "-" * width + "+"
    body = ["|" + line.center(width) + "|" for line in lines]
    return "\n".join([border, *body, border]) + "\n"


def issue_certificate(user: User, view: CourseView, organization: str, base_url: str,
                      now: datetime | None = None) -> Certificate:
    """Certificate for a finished course, dated by its latest milestone completion."""
    if not user.permissions.can_download_certificates:
        raise Forbidden("User does not have permission to download certificates")
    course = view.course
    if view.enrolled_at is None or not is_course_complete(course):
        raise ValidationFailed("Course is not completed")
    completed_at = latest_completion(course)
    if completed_at is None:
        raise ValidationFailed("Course is not completed")
    valid_until = certificate_valid_until(course)
    cert_url = f"{base_url}/courses/{course.id}/certificate"
    return Certificate(
        course_id=course.id,
        course_title=course.title,
        student_name=user.full_name,
        instructor_name=course.instructor.name,
        organization=organization,
        completed_at=completed_at,
        valid_until=valid_until,
        is_valid=is_certification_valid(course, now or utcnow()),
        share_url=linkedin_share_url(course.title, organization, cert_url, completed_at, valid_until),
        document=render_certificate_text(
            organization, user.full_name, course.title, completed_at, course.instructor.name),
    )
