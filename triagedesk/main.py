from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from triagedesk.api.middleware import TimingMiddleware
from triagedesk.api.v1.router import v1_router
from triagedesk.api.v1.ws import router as ws_router
from triagedesk.api.ws import manager
from triagedesk.common import events
from triagedesk.common.logging import get_logger, setup_logging
from triagedesk.config import settings
from triagedesk.core.triage.ledger import InMemoryLedgerStore, LedgerStore, RequestLedger, SqlLedgerStore
from triagedesk.core.triage.service import TriageService

logger = get_logger("main")


async def build_ledger_store() -> LedgerStore:
    if settings.LEDGER_BACKEND == "sql":
        from triagedesk.db.session import async_session_factory, create_tables, engine

        await create_tables(engine)
        return SqlLedgerStore(async_session_factory)
    return InMemoryLedgerStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    store = await build_ledger_store()
    app.state.triage_service = TriageService(ledger=RequestLedger(store))
    events.subscribe(manager.handle_event)
    logger.info(
        "TriageDesk started (env=%s, ai=%s, ledger=%s)",
        settings.APP_ENV,
        settings.AI_PROVIDER,
        settings.LEDGER_BACKEND,
    )
    yield
    events.unsubscribe(manager.handle_event)
    if settings.LEDGER_BACKEND == "sql":
        from triagedesk.db.session import engine

        await engine.dispose()


app = FastAPI(
    title="TriageDesk API",
    description="Support triage and compensation decisions for mobile game player complaints",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
origins = settings.ALLOWED_ORIGINS.split(",") if settings.ALLOWED_ORIGINS != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TimingMiddleware)

app.include_router(v1_router, prefix="/api/v1")
app.include_router(ws_router, prefix="/api/v1")
