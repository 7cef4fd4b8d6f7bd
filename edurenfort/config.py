import os

# -------------------- APP --------------------

APP_NAME = "EduRenfort"
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT == "production"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

cors_origins_raw = os.getenv("CORS_ORIGINS", "*")
CORS_ORIGINS = ["*"] if cors_origins_raw.strip() == "*" else [
    origin.strip() for origin in cors_origins_raw.split(",") if origin.strip()
]

# -------------------- SESSIONS --------------------

SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_THIS_SECRET_LATER")
ALGORITHM = "HS256"
SESSION_COOKIE_NAME = "edurenfort_session"
SESSION_MAX_AGE_DAYS = int(os.getenv("SESSION_MAX_AGE_DAYS", "7"))

# -------------------- UPLOADS --------------------

UPLOAD_DIR = os.path.abspath(os.getenv("UPLOAD_DIR", "./uploads"))
MAX_UPLOAD_SIZE_MB = int(os.getenv("MAX_UPLOAD_SIZE_MB", "50"))
MAX_UPLOAD_SIZE = MAX_UPLOAD_SIZE_MB * 1024 * 1024
ALLOWED_CONTENT_TYPES = ["application/pdf"]

# -------------------- LIVE --------------------

JITSI_BASE_URL = os.getenv("JITSI_BASE_URL", "https://meet.jit.si").rstrip("/")
JITSI_ROOM_PREFIX = "edurenfort"
DEFAULT_LIVE_DURATION = 60
DEFAULT_MAX_PARTICIPANTS = 100

# -------------------- MAIL --------------------

MAIL_USERNAME = os.getenv("MAIL_USERNAME", "")
MAIL_PASSWORD = os.getenv("MAIL_PASSWORD", "")
MAIL_FROM = os.getenv("MAIL_FROM", "")
MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
MAIL_STARTTLS = os.getenv("MAIL_STARTTLS", "true").lower() == "true"
MAIL_SSL_TLS = os.getenv("MAIL_SSL_TLS", "false").lower() == "true"

OTP_EXPIRE_MINUTES = 10
