import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.http.health import router as health_router
from app.api.http.projects import router as projects_router
from app.api.http.collaboration import router as collaboration_router
from app.api.http.notifications import router as notifications_router
from app.api.ws.sync import router as websocket_router
from app.core.config import settings
from app.core.db import init_models
from app.core.exceptions import WorkflowError, PersistenceFailure

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    yield


app = FastAPI(
    title="RFP Workflow",
    description="Совместная работа команды над ответами на вопросы RFP",
    version="1.0.0",
    lifespan=lifespan
)

# Настройка CORS для работы с frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # В продакшене указать конкретные домены
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    """Единое преобразование ошибок процесса в HTTP ответы"""
    if isinstance(exc, PersistenceFailure):
        logger.error(f"{request.method} {request.url.path}: {exc.message}", exc_info=exc.original_error)
    else:
        logger.info(f"{request.method} {request.url.path}: {type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Подключаем роутеры
app.include_router(health_router)
app.include_router(projects_router)
app.include_router(collaboration_router)
app.include_router(notifications_router)
app.include_router(websocket_router)


@app.get("/")
async def root():
    """Корневой эндпоинт"""
    return {
        "message": "RFP Workflow API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }
