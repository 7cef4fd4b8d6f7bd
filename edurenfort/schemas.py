from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from . import config
from .models import Course, EducationLevel, LiveCourse, Subject, User

# -------------------- VALIDATION HELPERS --------------------

SUBJECTS = [s.value for s in Subject]
LEVELS = [l.value for l in EducationLevel]


def first_error_message(errors) -> str:
    """French message of the first pydantic error, falling back to its msg."""
    if not errors:
        return "Données invalides"
    error = errors[0]
    ctx = error.get("ctx") or {}
    if "error" in ctx:
        return str(ctx["error"])
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    return f"{location}: {error.get('msg')}" if location else error.get("msg")


def check_title(value):
    if value is None or len(value.strip()) < 3:
        raise ValueError("Le titre doit contenir au moins 3 caractères")
    return value.strip()


def check_description(value):
    if value is None or len(value.strip()) < 10:
        raise ValueError("La description doit contenir au moins 10 caractères")
    return value.strip()


def check_subject(value):
    if value not in SUBJECTS:
        raise ValueError("Matière invalide")
    return value


def check_level(value):
    if value not in LEVELS:
        raise ValueError("Niveau invalide")
    return value


def check_duration(value):
    if not 15 <= value <= 180:
        raise ValueError("La durée doit être comprise entre 15 et 180 minutes")
    return value


def parse_scheduled_at(value):
    if value is None or value == "":
        raise ValueError("La date est requise")
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            raise ValueError("Date invalide")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


# -------------------- AUTH --------------------

class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    role: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class UpdateProfileRequest(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    profileImageUrl: Optional[str] = None
    specialization: Optional[str] = None
    bio: Optional[str] = None


class BecomeTeacherRequest(BaseModel):
    specialization: Optional[str] = None
    bio: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: str


class VerifyOtpRequest(BaseModel):
    email: str
    otp: str


class ResetPasswordRequest(BaseModel):
    email: str
    otp: str
    newPassword: str


# -------------------- COURSES --------------------

class CreateCourseRequest(BaseModel):
    title: Optional[str] = Field(default=None, validate_default=True)
    description: Optional[str] = Field(default=None, validate_default=True)
    subject: Optional[str] = Field(default=None, validate_default=True)
    level: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("title")
    @classmethod
    def validate_title(cls, value):
        return check_title(value)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value):
        return check_description(value)

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, value):
        return check_subject(value)

    @field_validator("level")
    @classmethod
    def validate_level(cls, value):
        return check_level(value)


class UpdateCourseRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    level: Optional[str] = None
    isPublished: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, value):
        return None if value is None else check_title(value)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value):
        return None if value is None else check_description(value)

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, value):
        return None if value is None else check_subject(value)

    @field_validator("level")
    @classmethod
    def validate_level(cls, value):
        return None if value is None else check_level(value)


# -------------------- LIVE COURSES --------------------

class CreateLiveCourseRequest(BaseModel):
    title: Optional[str] = Field(default=None, validate_default=True)
    description: Optional[str] = None
    subject: Optional[str] = Field(default=None, validate_default=True)
    level: Optional[str] = Field(default=None, validate_default=True)
    scheduledAt: Optional[datetime] = Field(default=None, validate_default=True)
    duration: Optional[int] = Field(default=None, validate_default=True)

    @field_validator("title")
    @classmethod
    def validate_title(cls, value):
        return check_title(value)

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, value):
        return check_subject(value)

    @field_validator("level")
    @classmethod
    def validate_level(cls, value):
        return check_level(value)

    @field_validator("scheduledAt", mode="before")
    @classmethod
    def validate_scheduled_at(cls, value):
        return parse_scheduled_at(value)

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, value):
        if value is None or value == 0:
            return config.DEFAULT_LIVE_DURATION
        return check_duration(value)


class UpdateLiveCourseRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    level: Optional[str] = None
    scheduledAt: Optional[datetime] = None
    duration: Optional[int] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, value):
        return None if value is None else check_title(value)

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, value):
        return None if value is None else check_subject(value)

    @field_validator("level")
    @classmethod
    def validate_level(cls, value):
        return None if value is None else check_level(value)

    @field_validator("scheduledAt", mode="before")
    @classmethod
    def validate_scheduled_at(cls, value):
        return None if value is None else parse_scheduled_at(value)

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, value):
        return None if value is None else check_duration(value)


# -------------------- RESPONSES --------------------

def serialize_user(user: User):
    if user is None:
        return None
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "profileImageUrl": user.profile_image_url,
        "role": user.role,
        "teacherStatus": user.teacher_status,
        "specialization": user.specialization,
        "bio": user.bio,
        "createdAt": user.created_at,
        "updatedAt": user.updated_at,
    }


def serialize_teacher(user: User, course_count: int, live_count: int):
    data = serialize_user(user)
    data["courseCount"] = course_count
    data["liveCount"] = live_count
    return data


def serialize_course(course: Course):
    return {
        "id": course.id,
        "title": course.title,
        "description": course.description,
        "subject": course.subject,
        "level": course.level,
        "pdfUrl": course.pdf_url,
        "pdfFileName": course.pdf_file_name,
        "thumbnailUrl": course.thumbnail_url,
        "teacherId": course.teacher_id,
        "isPublished": course.is_published,
        "viewCount": course.view_count,
        "createdAt": course.created_at,
        "updatedAt": course.updated_at,
        "teacher": serialize_user(course.teacher),
    }


def serialize_live_course(live: LiveCourse):
    return {
        "id": live.id,
        "title": live.title,
        "description": live.description,
        "subject": live.subject,
        "level": live.level,
        "teacherId": live.teacher_id,
        "jitsiRoomId": live.jitsi_room_id,
        "jitsiUrl": live.jitsi_url,
        "scheduledAt": live.scheduled_at,
        "duration": live.duration,
        "isActive": live.is_active,
        "isEnded": live.is_ended,
        "state": live.state.value,
        "maxParticipants": live.max_participants,
        "createdAt": live.created_at,
        "updatedAt": live.updated_at,
        "teacher": serialize_user(live.teacher),
    }
