import logging
from datetime import timedelta

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import admin_config, config, mail, storage
from .errors import (
    DuplicateEmail,
    InvalidCredentials,
    NotFound,
    RoleMismatch,
    ServiceUnavailable,
    ValidationError,
)
from .models import (
    Course,
    Enrollment,
    LiveCourse,
    Role,
    TeacherStatus,
    User,
    UserSession,
    utcnow,
)
from .schemas import (
    BecomeTeacherRequest,
    LoginRequest,
    RegisterRequest,
    UpdateProfileRequest,
)
from .security import (
    ROLE_LABELS,
    generate_otp,
    generate_temp_password,
    hash_otp,
    hash_password,
    verify_otp,
    verify_password,
)

logger = logging.getLogger(__name__)

SELF_REGISTER_ROLES = (Role.student.value, Role.teacher.value)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(db: Session, email: str):
    return db.query(User).filter(User.email == normalize_email(email)).first()


# -------------------- REGISTER / LOGIN --------------------

def register(db: Session, data: RegisterRequest) -> User:
    if not all([data.email, data.password, data.firstName, data.lastName, data.role]):
        raise ValidationError("Tous les champs sont requis")

    # admins only come from the startup bootstrap
    if data.role == Role.admin.value:
        raise ValidationError("L'inscription en tant qu'administrateur n'est pas autorisée")
    if data.role not in SELF_REGISTER_ROLES:
        raise ValidationError("Rôle invalide")

    try:
        validate_email(data.email, check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError("Email invalide")
    if len(data.password) < 6:
        raise ValidationError("Le mot de passe doit contenir au moins 6 caractères")
    if len(data.firstName.strip()) < 2:
        raise ValidationError("Le prénom doit contenir au moins 2 caractères")
    if len(data.lastName.strip()) < 2:
        raise ValidationError("Le nom doit contenir au moins 2 caractères")

    if get_user_by_email(db, data.email):
        raise DuplicateEmail()

    user = User(
        email=normalize_email(data.email),
        password=hash_password(data.password),
        first_name=data.firstName.strip(),
        last_name=data.lastName.strip(),
        role=data.role,
        teacher_status=TeacherStatus.pending.value if data.role == Role.teacher.value else None,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent registration for the same email
        db.rollback()
        raise DuplicateEmail()
    db.refresh(user)
    logger.info("Registered user %s as %s", user.id, user.role)
    return user


def authenticate(db: Session, data: LoginRequest) -> User:
    if not data.email or not data.password:
        raise ValidationError("Email et mot de passe requis")

    user = get_user_by_email(db, data.email)
    # same error for unknown email and wrong password
    if not user or not verify_password(data.password, user.password):
        raise InvalidCredentials()

    if data.role and data.role != user.role:
        label = ROLE_LABELS.get(user.role, user.role)
        raise RoleMismatch(f"Ce compte est un compte {label}. Veuillez sélectionner le bon rôle.")

    logger.info("User %s logged in", user.id)
    return user


# -------------------- PROFILE --------------------

def update_profile(db: Session, user: User, data: UpdateProfileRequest) -> User:
    if data.firstName is not None:
        if len(data.firstName.strip()) < 2:
            raise ValidationError("Le prénom doit contenir au moins 2 caractères")
        user.first_name = data.firstName.strip()
    if data.lastName is not None:
        if len(data.lastName.strip()) < 2:
            raise ValidationError("Le nom doit contenir au moins 2 caractères")
        user.last_name = data.lastName.strip()
    if data.profileImageUrl is not None:
        user.profile_image_url = data.profileImageUrl or None
    if data.specialization is not None:
        user.specialization = data.specialization
    if data.bio is not None:
        user.bio = data.bio

    db.commit()
    db.refresh(user)
    return user


def become_teacher(db: Session, user: User, data: BecomeTeacherRequest) -> User:
    if user.role == Role.teacher.value:
        raise ValidationError("Vous êtes déjà enseignant")
    if user.role == Role.admin.value:
        raise ValidationError("Un administrateur ne peut pas devenir enseignant")
    if not data.specialization or len(data.specialization.strip()) < 2:
        raise ValidationError("La spécialisation est requise")
    if not data.bio or len(data.bio.strip()) < 10:
        raise ValidationError("La bio doit contenir au moins 10 caractères")

    user.role = Role.teacher.value
    user.teacher_status = TeacherStatus.pending.value
    user.specialization = data.specialization.strip()
    user.bio = data.bio.strip()
    # sessions carry the role, refresh them
    db.query(UserSession).filter(UserSession.user_id == user.id).update(
        {UserSession.user_role: user.role}, synchronize_session=False
    )
    db.commit()
    db.refresh(user)
    logger.info("User %s applied to become a teacher", user.id)
    return user


# -------------------- PASSWORD RESET --------------------

async def forgot_password(db: Session, email: str):
    user = get_user_by_email(db, email)
    if not user:
        raise NotFound("Email non enregistré")
    if not mail.is_configured():
        raise ServiceUnavailable("Service email non configuré")

    otp = generate_otp()
    user.reset_otp = hash_otp(otp)
    user.otp_expiry = utcnow() + timedelta(minutes=config.OTP_EXPIRE_MINUTES)
    db.commit()

    await mail.send_otp_email(user.email, otp)
    logger.info("Password reset code sent to user %s", user.id)


def check_otp(db: Session, email: str, otp: str) -> User:
    user = get_user_by_email(db, email)
    if not user or not user.reset_otp:
        raise ValidationError("Code invalide")
    if user.otp_expiry is None or user.otp_expiry < utcnow():
        raise ValidationError("Code expiré")
    if not verify_otp(otp, user.reset_otp):
        raise ValidationError("Code invalide")
    return user


def reset_password(db: Session, email: str, otp: str, new_password: str):
    user = check_otp(db, email, otp)
    if len(new_password) < 6:
        raise ValidationError("Le mot de passe doit contenir au moins 6 caractères")

    user.password = hash_password(new_password)
    user.reset_otp = None
    user.otp_expiry = None
    db.query(UserSession).filter(UserSession.user_id == user.id).delete()
    db.commit()
    logger.info("Password reset for user %s", user.id)


# -------------------- ADMIN --------------------

def list_users(db: Session):
    return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def list_pending_teachers(db: Session):
    return (
        db.query(User)
        .filter(User.role == Role.teacher.value, User.teacher_status == TeacherStatus.pending.value)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )


def list_approved_teachers(db: Session):
    """Approved teachers with their course and live counts."""
    teachers = (
        db.query(User)
        .filter(User.role == Role.teacher.value, User.teacher_status == TeacherStatus.approved.value)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    course_counts = dict(
        db.query(Course.teacher_id, func.count(Course.id)).group_by(Course.teacher_id).all()
    )
    live_counts = dict(
        db.query(LiveCourse.teacher_id, func.count(LiveCourse.id)).group_by(LiveCourse.teacher_id).all()
    )
    return [
        (teacher, course_counts.get(teacher.id, 0), live_counts.get(teacher.id, 0))
        for teacher in teachers
    ]


def set_teacher_status(db: Session, teacher_id: int, status: TeacherStatus) -> User:
    teacher = db.query(User).filter(User.id == teacher_id, User.role == Role.teacher.value).first()
    if not teacher:
        raise NotFound("Enseignant introuvable")
    teacher.teacher_status = status.value
    db.commit()
    db.refresh(teacher)
    logger.info("Teacher %s marked %s", teacher_id, status.value)
    return teacher


def approve_teacher(db: Session, teacher_id: int) -> User:
    return set_teacher_status(db, teacher_id, TeacherStatus.approved)


def reject_teacher(db: Session, teacher_id: int) -> User:
    return set_teacher_status(db, teacher_id, TeacherStatus.rejected)


def delete_user(db: Session, user_id: int):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("Utilisateur introuvable")
    if user.role == Role.admin.value:
        raise ValidationError("Impossible de supprimer un administrateur")

    courses = db.query(Course).filter(Course.teacher_id == user_id).all()
    pdf_urls = [course.pdf_url for course in courses]
    course_ids = [course.id for course in courses]
    live_ids = [
        live_id for (live_id,) in db.query(LiveCourse.id).filter(LiveCourse.teacher_id == user_id).all()
    ]

    if course_ids:
        db.query(Enrollment).filter(Enrollment.course_id.in_(course_ids)).delete(synchronize_session=False)
        db.query(Course).filter(Course.id.in_(course_ids)).delete(synchronize_session=False)
    if live_ids:
        db.query(Enrollment).filter(Enrollment.live_course_id.in_(live_ids)).delete(synchronize_session=False)
        db.query(LiveCourse).filter(LiveCourse.id.in_(live_ids)).delete(synchronize_session=False)
    db.query(Enrollment).filter(Enrollment.student_id == user_id).delete(synchronize_session=False)
    db.query(UserSession).filter(UserSession.user_id == user_id).delete(synchronize_session=False)
    db.delete(user)
    db.commit()
    logger.info(
        "Deleted user %s with %d courses and %d lives", user_id, len(course_ids), len(live_ids)
    )

    for pdf_url in pdf_urls:
        storage.remove_upload(pdf_url)


def reset_user_password(db: Session, user_id: int) -> str:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("Utilisateur introuvable")
    if user.role == Role.admin.value:
        raise ValidationError("Impossible de réinitialiser le mot de passe d'un administrateur")

    temp_password = generate_temp_password()
    user.password = hash_password(temp_password)
    user.reset_otp = None
    user.otp_expiry = None
    db.commit()
    return temp_password


def bootstrap_admin(db: Session):
    """Create the admin account from ADMIN_EMAIL/ADMIN_PASSWORD if missing."""
    if not admin_config.ADMIN_EMAIL or not admin_config.ADMIN_PASSWORD:
        logger.info("ADMIN_EMAIL or ADMIN_PASSWORD not set - skipping admin user creation")
        return None

    existing = get_user_by_email(db, admin_config.ADMIN_EMAIL)
    if existing:
        logger.info("Admin user already exists")
        return existing

    admin = User(
        email=normalize_email(admin_config.ADMIN_EMAIL),
        password=hash_password(admin_config.ADMIN_PASSWORD),
        first_name=admin_config.ADMIN_FIRST_NAME,
        last_name=admin_config.ADMIN_LAST_NAME,
        role=Role.admin.value,
        teacher_status=None,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Admin user created successfully")
    return admin
