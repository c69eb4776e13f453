from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from investigator.api.routes import investigations, models, stream
from investigator.config import settings
from investigator.services import logger as log_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_service.log_event(event_type="app_started", message="Investigator API started")
    yield


app = FastAPI(
    title="Investigator",
    description="Autonomous web investigation agent",
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
app.include_router(stream.router)
app.include_router(investigations.router)
app.include_router(models.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "investigator"}
