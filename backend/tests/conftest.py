from __future__ import annotations

from datetime import timedelta

import httpx
import pytest
import pytest_asyncio

from app.clients.database import (
    build_engine,
    get_session,
    init_models,
    session_factory,
    unit_of_work,
)
from app.main import app
from app.models.enums import MaterialType, QuestionnaireType, QuestionType, Role, UserStatus
from app.repositories.material_repository import MaterialRecord, MaterialRepository
from app.repositories.post_test_batch_repository import (
    PostTestBatchRecord,
    PostTestBatchRepository,
)
from app.repositories.questionnaire_repository import (
    QuestionnaireRecord,
    QuestionnaireRepository,
    QuestionRecord,
)
from app.repositories.tables import utc_now
from app.repositories.user_repository import UserRecord, UserRepository

ADMIN_TOKEN = "admin-token"


@pytest.fixture(autouse=True)
def _set_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'study.db'}")
    monkeypatch.setenv("ADMIN_ACCESS_TOKEN", ADMIN_TOKEN)
    monkeypatch.delenv("ADMIN_AUTH_DISABLED", raising=False)
    monkeypatch.delenv("ADMIN_AUDIT_ADMIN_ID", raising=False)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'study.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    async with session_factory(engine)() as session:
        yield session


@pytest_asyncio.fixture
async def client(engine):
    factory = session_factory(engine)

    async def _session_override():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides = {}


class StudyFactory:
    """Seeds study data, committing each write."""

    def __init__(self, session) -> None:
        self.session = session
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    async def user(
        self,
        role: Role,
        *,
        name: str | None = None,
        status: UserStatus = UserStatus.ACTIVE,
    ) -> UserRecord:
        number = self._next()
        name = name or f"{role.value.title()} {number}"
        async with unit_of_work(self.session):
            return await UserRepository(self.session).create_user(
                email=f"{role.value}{number}@example.org",
                name=name,
                role=role,
                status=status,
                hospital="General",
            )

    async def questionnaire(
        self,
        questionnaire_type: QuestionnaireType = QuestionnaireType.PRETEST,
        *,
        questions: int = 2,
        title: str | None = None,
    ) -> tuple[QuestionnaireRecord, list[QuestionRecord]]:
        repo = QuestionnaireRepository(self.session)
        async with unit_of_work(self.session):
            questionnaire = await repo.create_questionnaire(
                {
                    "title": title or f"{questionnaire_type.value} survey",
                    "description": None,
                    "type": questionnaire_type,
                    "is_active": True,
                }
            )
            records = []
            for index in range(questions):
                records.append(
                    await repo.create_question(
                        {
                            "questionnaire_id": questionnaire.id,
                            "text": f"Question {index + 1}",
                            "type": QuestionType.LIKERT_SCALE,
                            "options": None,
                            "order_index": index + 1,
                            "step": 1 if index < 2 else 2,
                            "is_required": True,
                            "min_value": 1,
                            "max_value": 5,
                        }
                    )
                )
        return questionnaire, records

    async def post_test_batch(
        self, *, is_open: bool = True, active: bool = True
    ) -> PostTestBatchRecord:
        now = utc_now()
        if is_open:
            window = (now - timedelta(days=1), now + timedelta(days=1))
        else:
            window = (now + timedelta(days=1), now + timedelta(days=2))
        async with unit_of_work(self.session):
            return await PostTestBatchRepository(self.session).create_batch(
                {
                    "name": f"Batch {self._next()}",
                    "description": None,
                    "open_date": window[0],
                    "close_date": window[1],
                    "is_active": active,
                }
            )

    async def material(
        self,
        material_type: MaterialType = MaterialType.PDF,
        *,
        title: str | None = None,
        order_index: int = 0,
        active: bool = True,
    ) -> MaterialRecord:
        number = self._next()
        async with unit_of_work(self.session):
            return await MaterialRepository(self.session).create_material(
                {
                    "title": title or f"Material {number}",
                    "description": None,
                    "type": material_type,
                    "storage_key": f"materials/{number}.{material_type.value}",
                    "order_index": order_index,
                    "is_active": active,
                }
            )


@pytest_asyncio.fixture
async def factory(engine):
    async with session_factory(engine)() as seed_session:
        yield StudyFactory(seed_session)

