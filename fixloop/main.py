import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from fixloop.api.admin.audit import router as audit_router
from fixloop.api.admin.requests import router as admin_requests_router
from fixloop.api.providers import router as providers_router
from fixloop.api.requests import recycles_router, repairs_router
from fixloop.core.config import get_settings
from fixloop.core.errors import EngineError
from fixloop.db.mongo import ensure_indexes, mongo
from fixloop.services.notifications import wait_pending

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    mongo.connect()
    await ensure_indexes()
    logger.info("%s started (%s)", settings.app_name, settings.env)
    yield
    await wait_pending()
    mongo.close()


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{where}: {first.get('msg')}" if where else str(first.get("msg", "Invalid request"))
    return JSONResponse(status_code=422, content={"error": "ValidationError", "message": message})


# requests
app.include_router(repairs_router)
app.include_router(recycles_router)

# providers
app.include_router(providers_router)

# admin
app.include_router(admin_requests_router)
app.include_router(audit_router)


@app.get("/")
def root():
    return {"ok": True, "docs": "/docs"}


def run():
    uvicorn.run("fixloop.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())
