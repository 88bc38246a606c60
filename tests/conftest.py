import itertools
import os

# Importing main builds the module-level app; keep it off the on-disk database
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient

from fixmycity.config.database import Database
from fixmycity.config.settings import Settings
from fixmycity.features.auth.service import issue_tokens
from fixmycity.models.complaint import Complaint, ComplaintRemark
from fixmycity.models.department import Department
from fixmycity.models.user import Role, User
from fixmycity.utils.security import get_password_hash
from main import create_app

PASSWORD = "secret123"


class FakeImageStore:
    def __init__(self):
        self.uploads = []

    def upload(self, content, file_name, folder="complaints"):
        self.uploads.append({"content": content, "file_name": file_name, "folder": folder})
        return {"url": f"https://img.example.com/{folder}/{file_name}", "fileId": f"file-{len(self.uploads)}"}


class Factory:
    """Writes fixtures straight to the database, each in its own short session."""

    _emails = itertools.count(1)

    def __init__(self, app):
        self.database = app.state.database
        self.tokens = app.state.token_service
        self.settings = app.state.settings

    def user(self, name="Alice", role=Role.CITIZEN, email=None, password=PASSWORD, department_id=None, is_active=True) -> int:
        email = email or f"user{next(self._emails)}@example.com"
        with self.database.session() as db:
            user = User(
                name=name,
                email=email,
                hashed_password=get_password_hash(password, rounds=self.settings.BCRYPT_ROUNDS),
                role=role.value,
                department_id=department_id,
                is_active=is_active,
            )
            db.add(user)
            db.commit()
            return user.id

    def department(self, name, head_id, categories=()) -> int:
        with self.database.session() as db:
            head = db.get(User, head_id)
            department = Department(name=name, description=f"{name} department", head=head, members=[head], categories=list(categories))
            db.add(department)
            db.flush()
            head.department_id = department.id
            db.commit()
            return department.id

    def admin(self, department_name, categories=(), name="Dana") -> int:
        """An admin heading a fresh department that owns ``categories``."""
        admin_id = self.user(name=name, role=Role.ADMIN)
        self.department(department_name, admin_id, categories)
        return admin_id

    def complaint(self, submitted_by_id, category="Street Lighting", title="Broken streetlight", status="submitted", **extra) -> int:
        with self.database.session() as db:
            complaint = Complaint(
                title=title,
                description="The light on the corner has been out for a week.",
                category=category,
                priority=extra.pop("priority", "medium"),
                status=status,
                location="Corner of 5th and Main",
                submitted_by_id=submitted_by_id,
                **extra,
            )
            db.add(complaint)
            db.commit()
            return complaint.id

    def get_complaint(self, complaint_id):
        with self.database.session() as db:
            complaint = db.get(Complaint, complaint_id)
            if complaint is not None:
                # Load the remark log before the session goes away
                complaint.remarks
            return complaint

    def remark_count(self, complaint_id) -> int:
        with self.database.session() as db:
            return db.query(ComplaintRemark).filter(ComplaintRemark.complaint_id == complaint_id).count()

    def get_user(self, user_id):
        with self.database.session() as db:
            return db.get(User, user_id)

    def get_department(self, name):
        with self.database.session() as db:
            department = db.query(Department).filter(Department.name == name).first()
            if department is not None:
                department.members
            return department

    def headers(self, user_id) -> dict:
        with self.database.session() as db:
            access_token, _ = issue_tokens(self.tokens, db.get(User, user_id))
        return {"Authorization": f"Bearer {access_token}"}

    def refresh_token(self, user_id) -> str:
        with self.database.session() as db:
            _, refresh_token = issue_tokens(self.tokens, db.get(User, user_id))
        return refresh_token


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite://",
        JWT_SECRET="test-access-secret",
        JWT_REFRESH_SECRET="test-refresh-secret",
        BCRYPT_ROUNDS=4,
        LOG_LEVEL="WARNING",
        LOG_DIR=None,
        ENVIRONMENT="development",
    )


@pytest.fixture
def image_store():
    return FakeImageStore()


@pytest.fixture
def app(settings, image_store):
    database = Database("sqlite://")
    application = create_app(settings=settings, database=database, image_store=image_store)
    yield application
    database.dispose()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def factory(app):
    return Factory(app)


@pytest.fixture
def super_admin(factory):
    return factory.user(name="Root", role=Role.SUPER_ADMIN)
