"""Dashboard counters, recomputed on every request."""
from sqlalchemy import func
from sqlalchemy.orm import Session

from .models import Course, Enrollment, LiveCourse, Role, TeacherStatus, User, utcnow


def _count(query) -> int:
    return int(query.scalar() or 0)


def student_stats(db: Session, student_id: int, now=None):
    now = now or utcnow()
    return {
        "totalCourses": _count(
            db.query(func.count(Course.id)).filter(Course.is_published.is_(True))
        ),
        "upcomingLives": _count(
            db.query(func.count(LiveCourse.id)).filter(
                LiveCourse.is_ended.is_(False), LiveCourse.scheduled_at >= now
            )
        ),
        # not tracked yet
        "studyHours": 0,
        "enrolledCourses": _count(
            db.query(func.count(Enrollment.id)).filter(Enrollment.student_id == student_id)
        ),
    }


def teacher_stats(db: Session, teacher_id: int):
    course_count, total_views = (
        db.query(func.count(Course.id), func.coalesce(func.sum(Course.view_count), 0))
        .filter(Course.teacher_id == teacher_id)
        .one()
    )
    return {
        "totalCourses": int(course_count or 0),
        "totalLives": _count(
            db.query(func.count(LiveCourse.id)).filter(LiveCourse.teacher_id == teacher_id)
        ),
        "totalViews": int(total_views or 0),
        # no enrollment flow yet
        "totalStudents": 0,
    }


def admin_stats(db: Session):
    teachers = db.query(func.count(User.id)).filter(User.role == Role.teacher.value)
    return {
        "totalUsers": _count(db.query(func.count(User.id))),
        "totalTeachers": _count(
            teachers.filter(User.teacher_status == TeacherStatus.approved.value)
        ),
        "pendingTeachers": _count(
            teachers.filter(User.teacher_status == TeacherStatus.pending.value)
        ),
        "totalCourses": _count(db.query(func.count(Course.id))),
        "totalLives": _count(db.query(func.count(LiveCourse.id))),
    }
