from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from querydesk.api.routes import session
from querydesk.config import settings
from querydesk.engine.session import Session
from querydesk.tools.http_transport import HttpTransport


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    app.state.session = Session(HttpTransport(), config=settings)
    yield
    # Shutdown
    app.state.session.dispose()


app = FastAPI(
    title="QueryDesk",
    description="Search and exam generation client session service",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(session.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "querydesk"}
