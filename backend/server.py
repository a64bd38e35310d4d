from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
import os
import logging
from pathlib import Path

from auth_errors import AuthError
from bootstrap import run_startup_bootstrap
from routers.activity import router as activity_router
from routers.admin_events import router as admin_events_router
from routers.admin_users import router as admin_users_router
from routers.auth_member import router as auth_router
from routers.events import router as events_router
from routers.members import router as members_router

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

APP_NAME = os.environ.get("APP_NAME", "AlumniCircle")

app = FastAPI(title=f"{APP_NAME} API", version="1.0.0")
api_router = APIRouter(prefix="/api")


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    logger.info("Auth error %s on %s", exc.code, request.url.path)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.on_event("startup")
async def startup_event():
    run_startup_bootstrap()
    logger.info("Startup bootstrap complete")


@api_router.get("/health")
def health():
    return {"status": "ok"}


api_router.include_router(auth_router)
api_router.include_router(members_router)
api_router.include_router(events_router)
api_router.include_router(admin_users_router)
api_router.include_router(admin_events_router)
api_router.include_router(activity_router)
app.include_router(api_router)

cors_origins = [origin.strip() for origin in os.environ.get("CORS_ORIGINS", "*").split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
