import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from conduit.config import settings
from conduit.exceptions import ConduitError
from conduit.middleware import TimingMiddleware
from conduit.routers import articles, tags, users

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Conduit Articles API",
    description="Articles, tags, favorites, comments and feeds for a RealWorld-style blog",
    version="1.0.0",
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(articles.router)
app.include_router(tags.router)
app.include_router(users.router)


# ---------------------------------------------------------------------------
# Error mapping: domain error kind -> status code + {"errors": {...}} body
# ---------------------------------------------------------------------------

@app.exception_handler(ConduitError)
async def conduit_error_handler(request: Request, exc: ConduitError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        # Drop the location prefix ("body", "article", ...) and keep the field.
        field = str(error["loc"][-1]) if error.get("loc") else "body"
        errors.setdefault(field, []).append(error.get("msg", "is invalid"))
    return JSONResponse(status_code=422, content={"errors": errors})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("store failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"errors": {"server": "Internal error"}})


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
