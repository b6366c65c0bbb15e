import os
import sys
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


# Ensure `import portal.app...` works regardless of where pytest is run from.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("db") / "test.sqlite3"


@pytest.fixture()
def app(test_db_path: Path) -> FastAPI:
    """
    The real FastAPI app (routers + exception handlers) wired to a temporary SQLite DB.
    The startup hook is not run; tables are created here.
    """
    # Must be set before importing portal.app.database so the engine binds to the test DB.
    os.environ["DISABLE_DOTENV"] = "1"
    os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{test_db_path}"

    from portal.app import database as db

    engine = create_engine(
        os.environ["DATABASE_URL"],
        connect_args={"check_same_thread": False},
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    # Patch the shared database module so router dependencies use the test DB.
    db.engine = engine
    db.SessionLocal = TestingSessionLocal

    # Import models so Base metadata is populated, then create tables.
    from portal.app import models  # noqa: F401

    db.Base.metadata.drop_all(bind=engine)
    db.Base.metadata.create_all(bind=engine)

    from portal.app.main import app as fastapi_app
    from portal.app.services import events

    events.clear()
    yield fastapi_app
    events.clear()
    engine.dispose()


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def db_session(app: FastAPI):
    """
    Direct SQLAlchemy session bound to the same temporary SQLite DB used by the test app.
    """
    from portal.app.database import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def auth_header():
    """auth_header(user_id, role) -> Authorization header for a locally minted token."""
    from portal.app.utils.jwt import create_access_token

    def _make(user_id: int, role: str) -> dict:
        token = create_access_token({"sub": str(user_id), "role": role})
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture()
def make_job(db_session):
    from portal.app.models.job import Job
    from portal.app.utils.json_fields import dump_string_list

    def _make(
        title: str = "Administrative Aide",
        *,
        degree_requirement: str | None = None,
        required_skills: list[str] | None = None,
        required_eligibilities: list[str] | None = None,
        years_of_experience: float | None = None,
        status: str = "active",
    ) -> Job:
        job = Job(
            title=title,
            description=f"{title} opening",
            degree_requirement=degree_requirement,
            required_skills=dump_string_list(required_skills),
            required_eligibilities=dump_string_list(required_eligibilities),
            years_of_experience=years_of_experience,
            status=status,
            created_by=900,
        )
        db_session.add(job)
        db_session.commit()
        db_session.refresh(job)
        return job

    return _make


@pytest.fixture()
def make_applicant(db_session):
    from portal.app.models.applicant import Applicant
    from portal.app.utils.json_fields import dump_string_list

    counter = {"n": 0}

    def _make(
        name: str | None = None,
        *,
        user_id: int | None = None,
        highest_degree: str | None = None,
        skills: list[str] | None = None,
        eligibilities: list[str] | None = None,
        years_experience: float | None = None,
    ) -> Applicant:
        counter["n"] += 1
        uid = user_id if user_id is not None else 1000 + counter["n"]
        applicant = Applicant(
            user_id=uid,
            name=name or f"Applicant {uid}",
            email=f"applicant{uid}@example.com",
            highest_degree=highest_degree,
            skills=dump_string_list(skills),
            eligibilities=dump_string_list(eligibilities),
            years_experience=years_experience,
        )
        db_session.add(applicant)
        db_session.commit()
        db_session.refresh(applicant)
        return applicant

    return _make


@pytest.fixture()
def submit(db_session):
    """submit(applicant, job=None, program=None) -> pending Application with its first history entry."""
    from portal.app.services import status_engine

    def _submit(applicant, job=None, program=None):
        return status_engine.submit_application(
            db_session,
            applicant,
            job_id=job.id if job is not None else None,
            program_id=program.id if program is not None else None,
        )

    return _submit


@pytest.fixture()
def staff():
    from portal.app.services.workflow import HR, Actor

    return Actor(id=900, role=HR)
