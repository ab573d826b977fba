import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from core.config import settings  # noqa: E402
from core.database import create_db_and_tables  # noqa: E402
from core.exceptions import DomainError  # noqa: E402
from routes.auth import router as auth_router  # noqa: E402
from routes.organization import router as organization_router  # noqa: E402
from routes.memberships import router as memberships_router  # noqa: E402
from routes.contribution_plans import router as contribution_plans_router  # noqa: E402
from routes.contributions import router as contributions_router  # noqa: E402
from routes.debts import router as debts_router  # noqa: E402
from routes.transactions import router as transactions_router  # noqa: E402
from routes.subscriptions import router as subscriptions_router  # noqa: E402

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
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
app = FastAPI(
    lifespan=lifespan,
    title="CircleFund Backend",
    docs_url=None if settings.IS_PRODUCTION else "/docs",
)

allowed_origins = [
    settings.FRONTEND_URL,
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================================
# ❌ Error responses
# =========================================
@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error("❌ %s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', []))}: {err.get('msg')}" for err in exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content={"success": False, "error": "ValidationError", "detail": details},
    )


# =========================================
# 📦 Routers
# =========================================
app.include_router(auth_router)
app.include_router(organization_router)
app.include_router(memberships_router)
app.include_router(contribution_plans_router)
app.include_router(contributions_router)
app.include_router(debts_router)
app.include_router(transactions_router)
app.include_router(subscriptions_router)


# =========================================
# 🩺 Health Check
# =========================================
@app.get("/health")
def health_check():
    return {"status": "ok", "message": "Backend is running"}


@app.get("/")
def read_root():
    return {"message": "Welcome to CircleFund Backend!"}
