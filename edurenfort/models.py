import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .database import Base


def utcnow():
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Role(str, enum.Enum):
    student = "student"
    teacher = "teacher"
    admin = "admin"


class TeacherStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class Subject(str, enum.Enum):
    mathematiques = "mathematiques"
    francais = "francais"
    anglais = "anglais"
    physique = "physique"
    chimie = "chimie"
    svt = "svt"
    histoire_geo = "histoire_geo"
    philosophie = "philosophie"
    informatique = "informatique"
    economie = "economie"


class EducationLevel(str, enum.Enum):
    primaire = "primaire"
    college = "college"
    lycee = "lycee"
    siem = "siem"


class LiveState(str, enum.Enum):
    scheduled = "scheduled"
    live = "live"
    ended = "ended"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    profile_image_url = Column(String(500), nullable=True)
    role = Column(String(50), nullable=False, default=Role.student.value)
    teacher_status = Column(String(50), nullable=True)  # pending | approved | rejected, teachers only
    specialization = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    reset_otp = Column(String(255), nullable=True)
    otp_expiry = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    subject = Column(String(50), nullable=False)
    level = Column(String(50), nullable=False)
    pdf_url = Column(String(500), nullable=False)
    pdf_file_name = Column(String(255), nullable=True)
    thumbnail_url = Column(String(500), nullable=True)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_published = Column(Boolean, nullable=False, default=True)
    view_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    teacher = relationship("User", lazy="joined")


class LiveCourse(Base):
    __tablename__ = "live_courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    subject = Column(String(50), nullable=False)
    level = Column(String(50), nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    jitsi_room_id = Column(String(100), unique=True, nullable=False)
    jitsi_url = Column(String(500), nullable=False)
    scheduled_at = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False, default=60)  # minutes
    is_active = Column(Boolean, nullable=False, default=False)
    is_ended = Column(Boolean, nullable=False, default=False)
    max_participants = Column(Integer, nullable=False, default=100)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    teacher = relationship("User", lazy="joined")

    @property
    def state(self) -> LiveState:
        if self.is_ended:
            return LiveState.ended
        if self.is_active:
            return LiveState.live
        return LiveState.scheduled


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=True)
    live_course_id = Column(Integer, ForeignKey("live_courses.id"), nullable=True)
    enrolled_at = Column(DateTime, nullable=False, default=utcnow)
    completed_at = Column(DateTime, nullable=True)


class UserSession(Base):
    __tablename__ = "sessions"

    id = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user_role = Column(String(50), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False)
