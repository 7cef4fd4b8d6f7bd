import hashlib
import logging
import random
import secrets
from dataclasses import dataclass
from datetime import timedelta

from fastapi import Depends, Request, Response
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import config
from .database import get_db
from .errors import Forbidden, Unauthenticated, UserGone
from .models import Role, TeacherStatus, User, UserSession, utcnow

logger = logging.getLogger(__name__)

# -------------------- PASSWORDS --------------------

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str):
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str):
    return pwd_context.verify(password, hashed)


def generate_otp():
    return str(random.randint(100000, 999999))


def hash_otp(otp: str):
    return hashlib.sha256(otp.encode()).hexdigest()


def verify_otp(plain_otp: str, hashed_otp: str):
    return secrets.compare_digest(hash_otp(plain_otp), hashed_otp)


def generate_temp_password(length: int = 10):
    alphabet = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz23456789"
    return "".join(secrets.choice(alphabet) for _ in range(length))


# -------------------- ROLES --------------------

ROLE_LABELS = {
    Role.student.value: "étudiant",
    Role.teacher.value: "professeur",
    Role.admin.value: "administrateur",
}


def is_admin(user: User) -> bool:
    return user.role == Role.admin.value


def can_publish(user: User) -> bool:
    """Admins and approved teachers may create courses and lives."""
    if is_admin(user):
        return True
    return (
        user.role == Role.teacher.value
        and user.teacher_status == TeacherStatus.approved.value
    )


def can_manage(user: User, owner_id: int) -> bool:
    return is_admin(user) or user.id == owner_id


# -------------------- SESSIONS --------------------

@dataclass
class SessionContext:
    session_id: str
    user_id: int
    user_role: str


def session_lifetime():
    return timedelta(days=config.SESSION_MAX_AGE_DAYS)


def create_session(db: Session, user: User) -> str:
    """Store a new server-side session and return the signed cookie value."""
    session_id = secrets.token_urlsafe(32)
    expires_at = utcnow() + session_lifetime()
    db.add(UserSession(
        id=session_id,
        user_id=user.id,
        user_role=user.role,
        expires_at=expires_at,
    ))
    db.commit()
    return jwt.encode(
        {"sid": session_id, "exp": expires_at},
        config.SECRET_KEY,
        algorithm=config.ALGORITHM,
    )


def read_session_token(token: str):
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        return None
    return payload.get("sid")


def destroy_session(db: Session, session_id: str):
    db.query(UserSession).filter(UserSession.id == session_id).delete()
    db.commit()


def set_session_cookie(response: Response, token: str):
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=token,
        max_age=int(session_lifetime().total_seconds()),
        httponly=True,
        secure=config.IS_PRODUCTION,
        samesite="lax",
    )


def clear_session_cookie(response: Response):
    response.delete_cookie(
        key=config.SESSION_COOKIE_NAME,
        httponly=True,
        secure=config.IS_PRODUCTION,
        samesite="lax",
    )


# -------------------- DEPENDENCIES --------------------

def get_session_context(request: Request, db: Session = Depends(get_db)) -> SessionContext:
    token = request.cookies.get(config.SESSION_COOKIE_NAME)
    if not token:
        raise Unauthenticated()

    session_id = read_session_token(token)
    if not session_id:
        raise Unauthenticated()

    stored = db.query(UserSession).filter(UserSession.id == session_id).first()
    if stored is None:
        raise Unauthenticated()
    if stored.expires_at < utcnow():
        destroy_session(db, session_id)
        raise Unauthenticated()

    return SessionContext(
        session_id=stored.id,
        user_id=stored.user_id,
        user_role=stored.user_role,
    )


def get_current_user(
    ctx: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
) -> User:
    user = db.query(User).filter(User.id == ctx.user_id).first()
    if user is None:
        logger.info("Session %s points to a deleted user, dropping it", ctx.session_id)
        destroy_session(db, ctx.session_id)
        raise UserGone()
    return user


def require_teacher(user: User = Depends(get_current_user)) -> User:
    if user.role not in (Role.teacher.value, Role.admin.value):
        raise Forbidden("Accès réservé aux enseignants")
    if not can_publish(user):
        raise Forbidden("Votre compte enseignant n'est pas encore approuvé")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not is_admin(user):
        raise Forbidden("Accès réservé aux administrateurs")
    return user
