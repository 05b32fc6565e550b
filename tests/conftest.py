"""
Pytest Configuration and Centralized Fixtures.

Provides reusable mocks and fixtures for testing:
- Mock database sessions and real SQLite-backed sessions
- Sample design system artifacts and model replies
- A scriptable fake generative model
- API test client with dependency overrides
"""

import asyncio
import copy
import json
import os
from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Set required environment variables BEFORE importing app modules
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_design_systems.db")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("LOG_FORMAT", "console")

from app.db.models import Base
from app.models.artifact import DesignSystemArtifact
from app.models.domain import Caller, ModelRequest, ModelResponse

ADMIN_KEY = os.environ["ADMIN_API_KEY"]


# ============================================================================
# Fake Generative Model
# ============================================================================


class FakeModel:
    """
    Scriptable stand-in for the generative model.

    ``replies`` are returned in order (the last one repeats). ``delay``
    sleeps before replying; ``error`` is raised instead of replying.
    """

    provider = "fake"

    def __init__(
        self,
        *replies: str,
        delay: float = 0.0,
        error: BaseException | None = None,
    ) -> None:
        self.replies = list(replies) or ["{}"]
        self.delay = delay
        self.error = error
        self.requests: list[ModelRequest] = []
        self.cancelled = False

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def invoke(self, request: ModelRequest) -> ModelResponse:
        self.requests.append(request)
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.error is not None:
            raise self.error
        text = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return ModelResponse(
            text=text,
            provider=self.provider,
            model="fake-model",
            input_tokens=120,
            output_tokens=880,
        )


# ============================================================================
# Artifact Fixtures
# ============================================================================


def _palette(name: str, main: str, description: str | None = None) -> dict[str, Any]:
    return {"name": name, "main": main, "description": description}


def model_reply_data(with_components: bool = False) -> dict[str, Any]:
    """Parsed JSON a well-behaved model returns for a generation."""
    data: dict[str, Any] = {
        "colors": {
            "primary": _palette("Deep Ocean", "#1D4ED8", "Trust and calm"),
            "secondary": _palette("Lagoon", "#0F766E", "Growth"),
            "accent": _palette("Sunrise", "#F59E0B", "Energy"),
            "neutral": _palette("Slate", "#64748B"),
            "semantic": {
                "success": _palette("Success", "#16A34A"),
                "error": _palette("Error", "#DC2626"),
                "warning": _palette("Warning", "#D97706"),
                "info": _palette("Info", "#2563EB"),
            },
        },
        "typography": {
            "heading_font": "Inter",
            "body_font": "Source Sans 3",
            "mono_font": "JetBrains Mono",
            "font_pairs": [
                {
                    "name": "Modern Clean",
                    "heading": "Inter",
                    "body": "Source Sans 3",
                    "description": "Neutral and legible",
                    "use_case": "Dashboards",
                }
            ],
            "type_scale": {"sm": "0.875rem", "base": "1rem", "lg": "1.125rem", "xl": "1.25rem"},
            "line_heights": {"tight": 1.25, "normal": 1.5},
            "weights": {"regular": 400, "bold": 700},
        },
    }
    if with_components:
        data["components"] = [
            {"name": "Button", "description": "Primary and secondary actions"},
            {"name": "Card", "description": "Content container"},
            "Input",
        ]
    return data


def model_reply(with_components: bool = False) -> str:
    """Model reply text for a generation."""
    return json.dumps(model_reply_data(with_components))


def artifact_data(**overrides: Any) -> dict[str, Any]:
    """A fresh artifact dict; top-level keys in ``overrides`` replace defaults."""
    data = copy.deepcopy(model_reply_data())
    data["components"] = [{"name": "Button"}, {"name": "Card"}]
    data["metadata"] = {"tier": "basic", "provider": "fake", "model": "fake-model"}
    data.update(overrides)
    return data


def make_artifact(**overrides: Any) -> DesignSystemArtifact:
    return DesignSystemArtifact.model_validate(artifact_data(**overrides))


def with_color(artifact: DesignSystemArtifact, palette: str, main: str) -> DesignSystemArtifact:
    """Copy of ``artifact`` with one palette recolored (shades rederived)."""
    data = artifact.model_dump(mode="json")
    data["colors"][palette] = {"name": data["colors"][palette]["name"], "main": main}
    return DesignSystemArtifact.model_validate(data)


@pytest.fixture
def sample_artifact() -> DesignSystemArtifact:
    """Basic-tier artifact whose accent fails WCAG AA on white."""
    return make_artifact()


@pytest.fixture
def caller() -> Caller:
    return Caller(user_id="user-123", plan="free")


@pytest.fixture
def fake_model() -> FakeModel:
    return FakeModel(model_reply())


# ============================================================================
# Database Session Fixtures
# ============================================================================


@pytest.fixture
def db_session() -> AsyncMock:
    """Create a mock database session with sensible defaults."""
    session = AsyncMock(spec=AsyncSession)

    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.get = AsyncMock(return_value=None)

    # Default execute returns empty result
    mock_result = MagicMock()
    mock_result.scalar_one_or_none = MagicMock(return_value=None)
    mock_result.first = MagicMock(return_value=None)
    mock_result.scalars = MagicMock(return_value=MagicMock(all=MagicMock(return_value=[])))
    session.execute = AsyncMock(return_value=mock_result)

    return session


@pytest.fixture
async def sqlite_engine(tmp_path):
    """File-backed SQLite engine with the schema created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'design_systems.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(sqlite_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Real database session against the SQLite test database."""
    async with session_factory() as session:
        yield session


# ============================================================================
# FastAPI Test Client Fixtures
# ============================================================================


@pytest.fixture
def app() -> FastAPI:
    """Create FastAPI app for testing."""
    from app.main import app as main_app

    return main_app


@pytest.fixture
async def async_client(
    app: FastAPI, session_factory, fake_model: FakeModel
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async test client backed by SQLite and the fake model.

    Model timeouts are shortened so timeout paths run quickly.
    """
    from app.api.dependencies import get_design_system_service
    from app.db.session import get_db
    from app.services.design_system import DesignSystemService
    from app.services.generation import GenerationOrchestrator
    from app.services.refinement import RefinementEngine

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    def override_service(db: AsyncSession = Depends(get_db)) -> DesignSystemService:
        return DesignSystemService(
            db,
            fake_model,
            orchestrator=GenerationOrchestrator(fake_model, timeout_seconds=0.2),
            engine=RefinementEngine(fake_model, timeout_seconds=0.2),
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_design_system_service] = override_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def user_headers() -> dict[str, str]:
    return {"X-User-ID": "user-123", "X-User-Plan": "free"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Key": ADMIN_KEY}
