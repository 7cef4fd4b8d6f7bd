import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.engine.url import make_url

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./edurenfort.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

engine_kwargs = {
    "echo": SQL_ECHO,
    "pool_pre_ping": True,
}

if DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}

engine = create_engine(DATABASE_URL, **engine_kwargs)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def should_run_mysql_migrations() -> bool:
    return (
        os.getenv("MIGRATE_DB", "false").lower() == "true"
        and DATABASE_URL.startswith("mysql")
    )


# Columns introduced after the first deployments, added in place on MySQL.
USER_COLUMNS = {
    "profile_image_url": "VARCHAR(500) DEFAULT NULL",
    "specialization": "VARCHAR(255) DEFAULT NULL",
    "bio": "TEXT DEFAULT NULL",
    "reset_otp": "VARCHAR(255) DEFAULT NULL",
    "otp_expiry": "DATETIME DEFAULT NULL",
}

COURSE_COLUMNS = {
    "thumbnail_url": "VARCHAR(500) DEFAULT NULL",
    "view_count": "INT NOT NULL DEFAULT 0",
}


def _add_missing_columns(cursor, table, columns):
    cursor.execute(f"SHOW TABLES LIKE '{table}'")
    if not cursor.fetchone():
        return
    cursor.execute(f"SHOW COLUMNS FROM {table}")
    existing_columns = [col[0] for col in cursor.fetchall()]
    for name, definition in columns.items():
        if name not in existing_columns:
            cursor.execute(f"ALTER TABLE {table} ADD COLUMN {name} {definition}")
            logger.info("Added '%s' column to %s table", name, table)


def migrate_mysql_database():
    import pymysql

    url = make_url(DATABASE_URL)
    database = url.database

    if not database:
        logger.warning("Skipping migration: DATABASE_URL missing database name")
        return

    connection = pymysql.connect(
        host=url.host or "localhost",
        user=url.username or "root",
        password=url.password or "",
        port=url.port or 3306,
        database=database,
    )
    try:
        with connection.cursor() as cursor:
            _add_missing_columns(cursor, "users", USER_COLUMNS)
            _add_missing_columns(cursor, "courses", COURSE_COLUMNS)

            # teacher_status is only meaningful for teachers
            cursor.execute(
                "UPDATE users SET teacher_status = 'pending' "
                "WHERE role = 'teacher' AND (teacher_status IS NULL OR teacher_status = '')"
            )
            cursor.execute(
                "UPDATE users SET teacher_status = NULL "
                "WHERE role <> 'teacher' AND teacher_status IS NOT NULL"
            )
        connection.commit()
        logger.info("MySQL migration completed")
    finally:
        connection.close()


def init_db():
    # models must be imported so their tables are registered on Base
    from . import models  # noqa: F401

    if should_run_mysql_migrations():
        migrate_mysql_database()

    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info("Database tables ready")
