import os
import tempfile
from datetime import datetime, timedelta

# Configure an in-memory database and scratch storage before any app import
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="learnable-tests-")
os.environ["DOCUMENTS_DIR"] = os.path.join(os.environ["DATA_DIR"], "documents")
os.environ["JWT_SECRET_KEY"] = "test-secret"

import pytest
import pytz
from fastapi.testclient import TestClient
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from core.database import SessionLocal, engine
from core.dependencies import get_chat_model, get_clock
from models.base import Base
from schemas.user import AuthContext
from utils import user_manager
from utils.invitation_manager import InvitationManager
from utils.school_manager import SchoolManager
from utils.student_manager import StudentManager
from utils.user_manager import UserManager

PASSWORD = "correct-horse"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    monkeypatch.setattr(user_manager, "BCRYPT_ROUNDS", 4)


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 3, 9, 0, tzinfo=pytz.utc))


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_llm():
    return FakeListChatModel(responses=["Photosynthesis turns light into chemical energy."])


@pytest.fixture
def client(clock, fake_llm):
    from app import app

    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_chat_model] = lambda: fake_llm
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def school(db, clock):
    """A registered school with its supervising administrator."""
    result = SchoolManager(db, clock=clock).register_school(
        "Lincoln High", "admin@lincoln.edu", PASSWORD, "Ada Admin"
    )
    result["admin"] = AuthContext(user_id=result["admin_user_id"], email="admin@lincoln.edu")
    return result


@pytest.fixture
def other_school(db, clock):
    result = SchoolManager(db, clock=clock).register_school(
        "Roosevelt Middle", "admin@roosevelt.edu", PASSWORD, "Rosa Admin"
    )
    result["admin"] = AuthContext(user_id=result["admin_user_id"], email="admin@roosevelt.edu")
    return result


def signup(db, clock, email: str, full_name: str = "Test User") -> AuthContext:
    profile = UserManager(db, clock=clock).signup(email, PASSWORD, full_name)
    return AuthContext(user_id=profile.id, email=profile.email)


def add_teacher(db, clock, school: dict, email: str = "jane@lincoln.edu") -> AuthContext:
    """Sign up an identity and make it a regular teacher of ``school``."""
    ctx = signup(db, clock, email, "Jane Teacher")
    invitations = InvitationManager(db, clock=clock)
    invitation = invitations.invite_teacher(school["admin"], school["school_id"], email)
    invitations.accept_invitation(ctx, invitation.invitation_token)
    return ctx


def add_pending_student(db, clock, school: dict, email: str = "sam@lincoln.edu") -> AuthContext:
    result = StudentManager(db, clock=clock).register_student(
        email, PASSWORD, "Sam Student", school["school_code"]
    )
    return AuthContext(user_id=result["user_id"], email=email)


@pytest.fixture
def teacher(db, clock, school):
    return add_teacher(db, clock, school)


@pytest.fixture
def pending_student(db, clock, school):
    return add_pending_student(db, clock, school)


def auth_headers(client, email: str, password: str = PASSWORD) -> dict:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['data']['token']}"}
