import logging
from contextlib import asynccontextmanager
from typing import Optional

import pydantic
from fastapi import BackgroundTasks, Depends, FastAPI, File, Form, Query, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy.orm import Session

from . import accounts, config, courses, live_courses, mail, stats, storage
from .database import SessionLocal, get_db, init_db
from .errors import AppError, UserGone, ValidationError
from .models import User, utcnow
from .schemas import (
    BecomeTeacherRequest,
    CreateCourseRequest,
    CreateLiveCourseRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateCourseRequest,
    UpdateLiveCourseRequest,
    UpdateProfileRequest,
    VerifyOtpRequest,
    first_error_message,
    serialize_course,
    serialize_live_course,
    serialize_teacher,
    serialize_user,
)
from .security import (
    clear_session_cookie,
    create_session,
    destroy_session,
    get_current_user,
    read_session_token,
    require_admin,
    require_teacher,
    set_session_cookie,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    storage.ensure_upload_dir()
    init_db()
    db = SessionLocal()
    try:
        accounts.bootstrap_admin(db)
    except Exception:
        logger.exception("Failed to create admin user")
    finally:
        db.close()
    yield


# -------------------- APP --------------------

app = FastAPI(title=f"{config.APP_NAME} Backend", lifespan=lifespan)

# room for the multipart boundaries and text fields around the PDF
MULTIPART_OVERHEAD = 64 * 1024


@app.middleware("http")
async def reject_oversized_uploads(request: Request, call_next):
    """Refuse course uploads by Content-Length before the body is spooled to disk."""
    if request.method == "POST" and request.url.path == "/api/courses":
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() \
                and int(content_length) > config.MAX_UPLOAD_SIZE + MULTIPART_OVERHEAD:
            logger.info("Rejected upload of %s bytes", content_length)
            exc = storage.too_large_error()
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
    return await call_next(request)


# registered last so it wraps every other middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -------------------- ERRORS --------------------

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    response = JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
    if isinstance(exc, UserGone):
        clear_session_cookie(response)
    return response


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": first_error_message(exc.errors())})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Erreur interne du serveur"})


# -------------------- HEALTH --------------------

@app.get("/api/health")
def health():
    return {"status": "ok", "timestamp": utcnow().isoformat()}


# -------------------- AUTH --------------------

@app.post("/api/auth/register")
def register(data: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    user = accounts.register(db, data)
    set_session_cookie(response, create_session(db, user))
    return serialize_user(user)


@app.post("/api/auth/login")
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = accounts.authenticate(db, data)
    set_session_cookie(response, create_session(db, user))
    return serialize_user(user)


@app.post("/api/auth/logout")
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    token = request.cookies.get(config.SESSION_COOKIE_NAME)
    session_id = read_session_token(token) if token else None
    if session_id:
        destroy_session(db, session_id)
    clear_session_cookie(response)
    return {"message": "Déconnexion réussie"}


@app.get("/api/auth/user")
def current_user(user: User = Depends(get_current_user)):
    return serialize_user(user)


@app.patch("/api/auth/user")
def update_current_user(data: UpdateProfileRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_user(accounts.update_profile(db, user, data))


@app.post("/api/auth/forgot-password")
async def forgot_password(data: ForgotPasswordRequest, db: Session = Depends(get_db)):
    await accounts.forgot_password(db, data.email)
    return {"message": "Code envoyé par email"}


@app.post("/api/auth/verify-otp")
def verify_otp(data: VerifyOtpRequest, db: Session = Depends(get_db)):
    accounts.check_otp(db, data.email, data.otp)
    return {"message": "Code vérifié"}


@app.post("/api/auth/reset-password")
def reset_password(data: ResetPasswordRequest, db: Session = Depends(get_db)):
    accounts.reset_password(db, data.email, data.otp, data.newPassword)
    return {"message": "Mot de passe réinitialisé"}


@app.post("/api/become-teacher")
def become_teacher(data: BecomeTeacherRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_user(accounts.become_teacher(db, user, data))


# -------------------- COURSES --------------------

@app.get("/api/courses")
def list_courses(
    search: Optional[str] = None,
    level: Optional[str] = None,
    subject: Optional[str] = None,
    teacherId: Optional[int] = None,
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    found = courses.list_courses(
        db, search=search, level=level, subject=subject, teacher_id=teacherId, limit=limit
    )
    return [serialize_course(c) for c in found]


@app.get("/api/courses/{course_id}")
def get_course(course_id: int, db: Session = Depends(get_db)):
    return serialize_course(courses.view_course(db, course_id))


@app.post("/api/courses", status_code=201)
async def create_course(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    subject: Optional[str] = Form(None),
    level: Optional[str] = Form(None),
    pdf: Optional[UploadFile] = File(None),
    teacher: User = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    try:
        data = CreateCourseRequest(title=title, description=description, subject=subject, level=level)
    except pydantic.ValidationError as exc:
        raise ValidationError(first_error_message(exc.errors()))

    pdf_url, pdf_file_name = await storage.save_pdf(pdf)
    return serialize_course(courses.create_course(db, teacher, data, pdf_url, pdf_file_name))


@app.patch("/api/courses/{course_id}")
def update_course(course_id: int, data: UpdateCourseRequest, user: User = Depends(require_teacher), db: Session = Depends(get_db)):
    return serialize_course(courses.update_course(db, course_id, user, data))


@app.delete("/api/courses/{course_id}")
def delete_course(course_id: int, user: User = Depends(require_teacher), db: Session = Depends(get_db)):
    courses.delete_course(db, course_id, user)
    return {"message": "Cours supprimé"}


# -------------------- LIVE COURSES --------------------

@app.get("/api/live-courses")
def list_live_courses(
    status: Optional[str] = None,
    level: Optional[str] = None,
    subject: Optional[str] = None,
    teacherId: Optional[int] = None,
    upcoming: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    if upcoming == "true":
        status = "upcoming"
    found = live_courses.list_live_courses(
        db, status=status, level=level, subject=subject, teacher_id=teacherId, limit=limit
    )
    return [serialize_live_course(live) for live in found]


@app.get("/api/live-courses/{live_id}")
def get_live_course(live_id: int, db: Session = Depends(get_db)):
    return serialize_live_course(live_courses.get_live_course_or_404(db, live_id))


@app.post("/api/live-courses", status_code=201)
def create_live_course(data: CreateLiveCourseRequest, teacher: User = Depends(require_teacher), db: Session = Depends(get_db)):
    return serialize_live_course(live_courses.create_live_course(db, teacher, data))


@app.patch("/api/live-courses/{live_id}")
def update_live_course(live_id: int, data: UpdateLiveCourseRequest, user: User = Depends(require_teacher), db: Session = Depends(get_db)):
    return serialize_live_course(live_courses.update_live_course(db, live_id, user, data))


@app.post("/api/live-courses/{live_id}/start")
def start_live(live_id: int, user: User = Depends(require_teacher), db: Session = Depends(get_db)):
    return serialize_live_course(live_courses.start_live(db, live_id, user))


@app.post("/api/live-courses/{live_id}/end")
def end_live(live_id: int, user: User = Depends(require_teacher), db: Session = Depends(get_db)):
    return serialize_live_course(live_courses.end_live(db, live_id, user))


@app.delete("/api/live-courses/{live_id}")
def delete_live_course(live_id: int, user: User = Depends(require_teacher), db: Session = Depends(get_db)):
    live_courses.delete_live_course(db, live_id, user)
    return {"message": "Live supprimé"}


# -------------------- TEACHER --------------------

@app.get("/api/teacher/courses")
def get_teacher_courses(teacher: User = Depends(require_teacher), db: Session = Depends(get_db)):
    return [serialize_course(c) for c in courses.list_teacher_courses(db, teacher.id)]


@app.get("/api/teacher/live-courses")
def get_teacher_live_courses(teacher: User = Depends(require_teacher), db: Session = Depends(get_db)):
    return [serialize_live_course(live) for live in live_courses.list_teacher_live_courses(db, teacher.id)]


@app.get("/api/teachers")
def get_teachers(db: Session = Depends(get_db)):
    return [
        serialize_teacher(teacher, course_count, live_count)
        for teacher, course_count, live_count in accounts.list_approved_teachers(db)
    ]


# -------------------- STATS --------------------

@app.get("/api/stats/student")
def get_student_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return stats.student_stats(db, user.id)


@app.get("/api/stats/teacher")
def get_teacher_stats(teacher: User = Depends(require_teacher), db: Session = Depends(get_db)):
    return stats.teacher_stats(db, teacher.id)


@app.get("/api/stats/admin")
def get_admin_stats(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return stats.admin_stats(db)


# -------------------- ADMIN --------------------

@app.get("/api/admin/users")
def get_admin_users(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return [serialize_user(u) for u in accounts.list_users(db)]


@app.get("/api/admin/courses")
def get_admin_courses(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return [serialize_course(c) for c in courses.list_courses(db, published_only=False)]


@app.get("/api/admin/live-courses")
def get_admin_live_courses(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return [serialize_live_course(live) for live in live_courses.list_live_courses(db)]


@app.get("/api/admin/pending-teachers")
def get_pending_teachers(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return [serialize_user(t) for t in accounts.list_pending_teachers(db)]


@app.post("/api/admin/teachers/{teacher_id}/approve")
def approve_teacher(teacher_id: int, background_tasks: BackgroundTasks, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    teacher = accounts.approve_teacher(db, teacher_id)
    background_tasks.add_task(mail.send_teacher_decision, teacher.email, teacher.first_name, True)
    return serialize_user(teacher)


@app.post("/api/admin/teachers/{teacher_id}/reject")
def reject_teacher(teacher_id: int, background_tasks: BackgroundTasks, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    teacher = accounts.reject_teacher(db, teacher_id)
    background_tasks.add_task(mail.send_teacher_decision, teacher.email, teacher.first_name, False)
    return serialize_user(teacher)


@app.delete("/api/admin/users/{user_id}")
def delete_user(user_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    accounts.delete_user(db, user_id)
    return {"message": "Utilisateur supprimé"}


@app.post("/api/admin/users/{user_id}/reset-password")
def reset_user_password(user_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    temp_password = accounts.reset_user_password(db, user_id)
    return {"message": "Mot de passe réinitialisé", "temporaryPassword": temp_password}


# -------------------- FILES --------------------

@app.get("/uploads/{filename}")
def serve_upload(filename: str):
    return FileResponse(
        storage.resolve_upload(filename),
        media_type="application/pdf",
        headers={"Content-Disposition": "inline", "X-Content-Type-Options": "nosniff"},
    )


@app.get("/api/download/{filename}")
def download_upload(filename: str, user: User = Depends(get_current_user)):
    return FileResponse(
        storage.resolve_upload(filename),
        media_type="application/pdf",
        filename=filename,
        headers={"X-Content-Type-Options": "nosniff"},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
