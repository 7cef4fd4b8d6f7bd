"""Live sessions and their Scheduled -> Live -> Ended lifecycle.

The state is derived from the ``is_active``/``is_ended`` columns and every
change goes through :func:`transition`, so ``is_active`` and ``is_ended`` are
never both true.
"""
import logging
import secrets

from sqlalchemy.orm import Session

from . import config
from .errors import Forbidden, InvalidTransition, NotFound, ValidationError
from .models import Enrollment, LiveCourse, LiveState, User, utcnow
from .schemas import CreateLiveCourseRequest, UpdateLiveCourseRequest
from .security import can_manage

logger = logging.getLogger(__name__)

STATUS_FILTERS = ("live", "upcoming", "past")

# column values for each state
STATE_FLAGS = {
    LiveState.scheduled: (False, False),
    LiveState.live: (True, False),
    LiveState.ended: (False, True),
}

# target state -> states it may be entered from
ALLOWED_TRANSITIONS = {
    LiveState.live: (LiveState.scheduled, LiveState.live),
    LiveState.ended: (LiveState.scheduled, LiveState.live, LiveState.ended),
}


def generate_room_id() -> str:
    return f"{config.JITSI_ROOM_PREFIX}_{secrets.token_hex(8)}"


def room_url(room_id: str) -> str:
    return f"{config.JITSI_BASE_URL}/{room_id}"


def next_state(current: LiveState, target: LiveState) -> LiveState:
    if current not in ALLOWED_TRANSITIONS.get(target, ()):
        if current is LiveState.ended:
            raise InvalidTransition("Ce live est terminé")
        raise InvalidTransition()
    return target


def transition(live: LiveCourse, target: LiveState) -> bool:
    """Move ``live`` to ``target``. Returns False when nothing changed."""
    current = live.state
    new_state = next_state(current, target)
    if new_state is current:
        return False
    live.is_active, live.is_ended = STATE_FLAGS[new_state]
    return True


def create_live_course(db: Session, teacher: User, data: CreateLiveCourseRequest) -> LiveCourse:
    room_id = generate_room_id()
    live = LiveCourse(
        title=data.title,
        description=data.description,
        subject=data.subject,
        level=data.level,
        teacher_id=teacher.id,
        jitsi_room_id=room_id,
        jitsi_url=room_url(room_id),
        scheduled_at=data.scheduledAt,
        duration=data.duration,
        is_active=False,
        is_ended=False,
        max_participants=config.DEFAULT_MAX_PARTICIPANTS,
    )
    db.add(live)
    db.commit()
    db.refresh(live)
    logger.info("Live course %s scheduled by user %s for %s", live.id, teacher.id, live.scheduled_at)
    return live


def get_live_course_or_404(db: Session, live_id: int) -> LiveCourse:
    live = db.query(LiveCourse).filter(LiveCourse.id == live_id).first()
    if not live:
        raise NotFound("Live introuvable")
    return live


def get_owned_live_course(db: Session, live_id: int, user: User) -> LiveCourse:
    live = get_live_course_or_404(db, live_id)
    if not can_manage(user, live.teacher_id):
        raise Forbidden("Vous n'êtes pas autorisé à gérer ce live")
    return live


def start_live(db: Session, live_id: int, user: User) -> LiveCourse:
    live = get_owned_live_course(db, live_id, user)
    if transition(live, LiveState.live):
        db.commit()
        db.refresh(live)
        logger.info("Live course %s started", live_id)
    return live


def end_live(db: Session, live_id: int, user: User) -> LiveCourse:
    live = get_owned_live_course(db, live_id, user)
    if transition(live, LiveState.ended):
        db.commit()
        db.refresh(live)
        logger.info("Live course %s ended", live_id)
    return live


def update_live_course(db: Session, live_id: int, user: User, data: UpdateLiveCourseRequest) -> LiveCourse:
    live = get_owned_live_course(db, live_id, user)
    if live.state is LiveState.ended:
        raise InvalidTransition("Ce live est terminé et ne peut plus être modifié")

    if data.title is not None:
        live.title = data.title
    if data.description is not None:
        live.description = data.description
    if data.subject is not None:
        live.subject = data.subject
    if data.level is not None:
        live.level = data.level
    if data.scheduledAt is not None:
        live.scheduled_at = data.scheduledAt
    if data.duration is not None:
        live.duration = data.duration

    db.commit()
    db.refresh(live)
    return live


def delete_live_course(db: Session, live_id: int, user: User):
    # allowed in every state, a running live is simply dropped
    get_owned_live_course(db, live_id, user)
    db.query(Enrollment).filter(Enrollment.live_course_id == live_id).delete()
    db.query(LiveCourse).filter(LiveCourse.id == live_id).delete()
    db.commit()
    logger.info("Live course %s deleted by user %s", live_id, user.id)


def list_live_courses(db: Session, status=None, level=None, subject=None, teacher_id=None, limit=None, now=None):
    query = db.query(LiveCourse)

    if status == "live":
        query = query.filter(LiveCourse.is_active.is_(True), LiveCourse.is_ended.is_(False))
    elif status == "upcoming":
        query = query.filter(
            LiveCourse.is_active.is_(False),
            LiveCourse.is_ended.is_(False),
            LiveCourse.scheduled_at >= (now or utcnow()),
        )
    elif status == "past":
        query = query.filter(LiveCourse.is_ended.is_(True))
    elif status:
        raise ValidationError("Statut invalide")

    if level:
        query = query.filter(LiveCourse.level == level)
    if subject:
        query = query.filter(LiveCourse.subject == subject)
    if teacher_id is not None:
        query = query.filter(LiveCourse.teacher_id == teacher_id)

    query = query.order_by(LiveCourse.scheduled_at.desc(), LiveCourse.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def list_teacher_live_courses(db: Session, teacher_id: int):
    return list_live_courses(db, teacher_id=teacher_id)
