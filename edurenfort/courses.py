import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import storage
from .errors import Forbidden, NotFound
from .models import Course, Enrollment, User
from .schemas import CreateCourseRequest, UpdateCourseRequest
from .security import can_manage

logger = logging.getLogger(__name__)


def create_course(db: Session, teacher: User, data: CreateCourseRequest, pdf_url: str, pdf_file_name: str) -> Course:
    course = Course(
        title=data.title,
        description=data.description,
        subject=data.subject,
        level=data.level,
        pdf_url=pdf_url,
        pdf_file_name=pdf_file_name,
        teacher_id=teacher.id,
        is_published=True,
        view_count=0,
    )
    db.add(course)
    db.commit()
    db.refresh(course)
    logger.info("Course %s created by user %s", course.id, teacher.id)
    return course


def list_courses(db: Session, search=None, level=None, subject=None, teacher_id=None, limit=None, published_only=True):
    query = db.query(Course)
    if published_only:
        query = query.filter(Course.is_published.is_(True))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Course.title.ilike(pattern), Course.description.ilike(pattern)))
    if level:
        query = query.filter(Course.level == level)
    if subject:
        query = query.filter(Course.subject == subject)
    if teacher_id is not None:
        query = query.filter(Course.teacher_id == teacher_id)
    query = query.order_by(Course.created_at.desc(), Course.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def list_teacher_courses(db: Session, teacher_id: int):
    return list_courses(db, teacher_id=teacher_id, published_only=False)


def get_course_or_404(db: Session, course_id: int) -> Course:
    course = db.query(Course).filter(Course.id == course_id).first()
    if not course:
        raise NotFound("Cours introuvable")
    return course


def view_course(db: Session, course_id: int) -> Course:
    """Fetch a course and count the view.

    Every successful fetch counts, repeated views by the same visitor
    included. The increment runs in SQL so concurrent views are not lost.
    """
    course = get_course_or_404(db, course_id)
    db.query(Course).filter(Course.id == course_id).update(
        {Course.view_count: Course.view_count + 1},
        synchronize_session=False,
    )
    db.commit()
    db.refresh(course)
    return course


def update_course(db: Session, course_id: int, user: User, data: UpdateCourseRequest) -> Course:
    course = get_course_or_404(db, course_id)
    if not can_manage(user, course.teacher_id):
        raise Forbidden("Vous n'êtes pas autorisé à modifier ce cours")

    if data.title is not None:
        course.title = data.title
    if data.description is not None:
        course.description = data.description
    if data.subject is not None:
        course.subject = data.subject
    if data.level is not None:
        course.level = data.level
    if data.isPublished is not None:
        course.is_published = data.isPublished

    db.commit()
    db.refresh(course)
    return course


def delete_course(db: Session, course_id: int, user: User):
    course = get_course_or_404(db, course_id)
    if not can_manage(user, course.teacher_id):
        raise Forbidden("Vous n'êtes pas autorisé à supprimer ce cours")

    pdf_url = course.pdf_url
    db.query(Enrollment).filter(Enrollment.course_id == course_id).delete()
    db.delete(course)
    db.commit()
    logger.info("Course %s deleted by user %s", course_id, user.id)

    # not transactional with the delete above: a crash here leaves an orphan file
    storage.remove_upload(pdf_url)
