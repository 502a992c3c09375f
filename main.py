import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

load_dotenv()

from core.config import settings  # noqa: E402
from core.database import create_db_and_tables  # noqa: E402
from core.errors import ErrorKind  # noqa: E402
from core.log_config import setup_logging  # noqa: E402
from routes.auth import router as auth_router  # noqa: E402
from routes.dashboard import router as dashboard_router  # noqa: E402
from routes.progress import router as progress_router  # noqa: E402
from routes.projects import router as project_router  # noqa: E402
from routes.tasks import router as tasks_router  # noqa: E402
from routes.time_tracking import router as time_tracking_router  # noqa: E402
from routes.workspaces import router as workspace_router  # noqa: E402

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


# =========================================
# 🏁 Lifespan (DB initialization)
# =========================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    logger.info("✅ Database tables created on startup.")
    yield
    logger.info("✅ Application shutting down.")


# =========================================
#  ✅ FastAPI App
# =========================================
app = FastAPI(lifespan=lifespan, title="WorkBoard Backend", debug=settings.DEBUG and not settings.IS_PRODUCTION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================================
# ❗ Error handlers
# =========================================
@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": {
                "kind": ErrorKind.VALIDATION_ERROR.value,
                "message": "Request validation failed",
                "errors": jsonable_encoder(exc.errors()),
            }
        },
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Unhandled database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "A database error occurred. Please try again later."},
    )


# =========================================
# 📦 Routers
# =========================================
app.include_router(auth_router, prefix="/auth", tags=["Authentication"])
app.include_router(workspace_router, prefix="/workspaces", tags=["Workspaces"])
app.include_router(project_router, prefix="/projects", tags=["Projects"])
app.include_router(tasks_router, prefix="/tasks", tags=["Tasks"])
app.include_router(time_tracking_router, prefix="/time-tracking", tags=["Time Tracking"])
app.include_router(progress_router, prefix="/progress", tags=["Progress"])
app.include_router(dashboard_router, prefix="/dashboard", tags=["Dashboard"])


# =========================================
# 🩺 Health Check
# =========================================
@app.get("/health")
def health_check():
    return {"status": "ok", "message": "Backend is running"}


@app.get("/")
def read_root():
    return {"message": "Welcome to WorkBoard Backend!"}
