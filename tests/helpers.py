import shutil
import unittest
from datetime import timedelta

from fastapi.testclient import TestClient

from edurenfort import config
from edurenfort.database import Base, SessionLocal, engine
from edurenfort.main import app
from edurenfort.models import Role, TeacherStatus, User, utcnow
from edurenfort.security import hash_password

PASSWORD = "secret123"
PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n"


class ApiTestCase(unittest.TestCase):
    """Fresh database and upload directory for every test."""

    def setUp(self):
        Base.metadata.drop_all(bind=engine)
        Base.metadata.create_all(bind=engine)
        shutil.rmtree(config.UPLOAD_DIR, ignore_errors=True)
        self._counter = 0

    def tearDown(self):
        shutil.rmtree(config.UPLOAD_DIR, ignore_errors=True)

    # -------------------- users --------------------

    def new_client(self):
        return TestClient(app)

    def next_email(self, prefix):
        self._counter += 1
        return f"{prefix}{self._counter}@example.com"

    def register(self, role="student", email=None):
        client = self.new_client()
        response = client.post("/api/auth/register", json={
            "email": email or self.next_email(role),
            "password": PASSWORD,
            "firstName": "Awa",
            "lastName": "Diallo",
            "role": role,
        })
        self.assertEqual(response.status_code, 200, response.text)
        return client, response.json()

    def insert_user(self, role, teacher_status=None, email=None):
        db = SessionLocal()
        try:
            user = User(
                email=email or self.next_email(role),
                password=hash_password(PASSWORD),
                first_name="Test",
                last_name="User",
                role=role,
                teacher_status=teacher_status,
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            return user.id, user.email
        finally:
            db.close()

    def login(self, email, role=None):
        client = self.new_client()
        payload = {"email": email, "password": PASSWORD}
        if role:
            payload["role"] = role
        response = client.post("/api/auth/login", json=payload)
        self.assertEqual(response.status_code, 200, response.text)
        return client

    def admin_client(self):
        _, email = self.insert_user(Role.admin.value)
        return self.login(email)

    def approved_teacher(self):
        user_id, email = self.insert_user(Role.teacher.value, TeacherStatus.approved.value)
        return self.login(email), user_id

    # -------------------- content --------------------

    def upload_course(self, client, title="Les fractions", **fields):
        data = {
            "title": title,
            "description": "Un cours complet sur les fractions.",
            "subject": "mathematiques",
            "level": "college",
        }
        data.update(fields)
        return client.post(
            "/api/courses",
            data=data,
            files={"pdf": ("fractions.pdf", PDF_BYTES, "application/pdf")},
        )

    def schedule_live(self, client, when=None, **fields):
        payload = {
            "title": "Révision du bac",
            "description": "Session de questions",
            "subject": "physique",
            "level": "lycee",
            "scheduledAt": (when or utcnow() + timedelta(days=1)).isoformat(),
            "duration": 60,
        }
        payload.update(fields)
        return client.post("/api/live-courses", json=payload)
