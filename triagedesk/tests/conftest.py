import pytest
from httpx import ASGITransport, AsyncClient

from triagedesk.common import events
from triagedesk.core.triage.compensation import CompensationPolicy
from triagedesk.core.triage.ledger import InMemoryLedgerStore, RequestLedger, SqlLedgerStore
from triagedesk.core.triage.schemas import PlayerContext
from triagedesk.core.triage.service import TriageService
from triagedesk.db.session import build_engine, build_session_factory, create_tables
from triagedesk.tests.fakes import FakeTextClient


@pytest.fixture(autouse=True)
def recorded_events():
    """Capture every emitted event; handlers are reset around each test."""
    received: list[tuple[str, dict]] = []

    async def recorder(event: str, data: dict) -> None:
        received.append((event, data))

    events.clear_handlers()
    events.subscribe(recorder)
    yield received
    events.clear_handlers()


@pytest.fixture
def fake_client():
    return FakeTextClient()


@pytest.fixture
def policy():
    return CompensationPolicy.from_settings()


@pytest.fixture
def service(fake_client, policy):
    return TriageService(client=fake_client, ledger=RequestLedger(InMemoryLedgerStore()), policy=policy)


@pytest.fixture
def player():
    return PlayerContext(player_id="player-1", player_name="Aria", game_level=30)


@pytest.fixture
async def sql_store(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await create_tables(engine)
    yield SqlLedgerStore(build_session_factory(engine))
    await engine.dispose()


@pytest.fixture(params=["memory", "sql"])
async def ledger(request, tmp_path):
    if request.param == "memory":
        yield RequestLedger(InMemoryLedgerStore())
        return
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await create_tables(engine)
    yield RequestLedger(SqlLedgerStore(build_session_factory(engine)))
    await engine.dispose()


@pytest.fixture
async def client(service):
    from triagedesk.api.deps import get_triage_service
    from triagedesk.main import app

    app.dependency_overrides[get_triage_service] = lambda: service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
