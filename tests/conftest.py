# tests/conftest.py
import os

os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BASE_URL"] = "http://testserver"
os.environ["SENDGRID_API_KEY"] = ""
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mindful_kids import crud, models, security
from mindful_kids.core.timeutils import utcnow
from mindful_kids.database import Base, get_db
from mindful_kids.limiter import limiter
from mindful_kids.main import app
from mindful_kids.services.email_service import EmailService, get_email_service
from mindful_kids.services.storage_service import DocumentStorage, get_storage

PASSWORD = "correct-horse-battery"


@pytest.fixture(scope="session")
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT to behave
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Fresh schema per test; the API and the test share this one session."""
    Base.metadata.create_all(bind=db_engine)
    session = sessionmaker(bind=db_engine, autoflush=False)()
    yield session
    session.close()
    Base.metadata.drop_all(bind=db_engine)


class RecordingEmailService(EmailService):
    """Renders the real templates but never talks to SendGrid."""

    def __init__(self):
        super().__init__(api_key="")
        self.outbox = []

    async def send_templated_email(self, to_email, subject, template_name, context):
        body = self.render(template_name, context)
        self.outbox.append({"to": to_email, "subject": subject, "template": template_name, "body": body})
        return False


@pytest.fixture
def storage(tmp_path):
    return DocumentStorage(tmp_path / "uploads", max_bytes=1024 * 1024)


@pytest.fixture
def email_service():
    return RecordingEmailService()


@pytest.fixture
def client(db_session, storage, email_service):
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_email_service] = lambda: email_service
    limiter.reset()
    yield TestClient(app)
    app.dependency_overrides.clear()


# --- users & tokens ---

def make_user(db, email, role=models.UserRole.parent, name=None):
    return crud.create_user(db, email=email, password=PASSWORD, name=name or email.split("@")[0], role=role)


def auth_headers(user):
    return {"Authorization": f"Bearer {security.create_access_token(user)}"}


@pytest.fixture
def parent(db_session):
    return make_user(db_session, "parent@example.com")


@pytest.fixture
def therapist(db_session):
    return make_user(db_session, "therapist@example.com", models.UserRole.therapist, "Dr. Rivera")


@pytest.fixture
def clinic_admin_user(db_session):
    return make_user(db_session, "clinicadmin@example.com", models.UserRole.clinic_admin)


@pytest.fixture
def admin(db_session):
    return make_user(db_session, "admin@example.com", models.UserRole.admin)


@pytest.fixture
def parent_headers(parent):
    return auth_headers(parent)


@pytest.fixture
def therapist_headers(therapist):
    return auth_headers(therapist)


@pytest.fixture
def clinic_admin_headers(clinic_admin_user):
    return auth_headers(clinic_admin_user)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


# --- domain objects ---

@pytest.fixture
def make_psychologist(db_session):
    def _make(name="Dr. Lee", status=models.VerificationStatus.verified, **fields):
        psychologist = models.Psychologist(name=name, verification_status=status, is_active=True, **fields)
        if status == models.VerificationStatus.verified and "verified_at" not in fields:
            psychologist.verified_at = utcnow()
        db_session.add(psychologist)
        db_session.commit()
        db_session.refresh(psychologist)
        return psychologist
    return _make


@pytest.fixture
def make_clinic(db_session):
    def _make(name="Sunrise Clinic", **fields):
        fields.setdefault("country", "Spain")
        fields.setdefault("verification_status", models.ClinicVerificationStatus.verified)
        clinic = models.Clinic(name=name, slug=crud.slugify(name), **fields)
        db_session.add(clinic)
        db_session.commit()
        db_session.refresh(clinic)
        return clinic
    return _make
