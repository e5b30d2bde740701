import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core import config, db
from core.logging_setup import configure_logging
from core.outcomes import Outcome, ServiceError, error_response, status_code
from media import router as media_router
from petitions import router as petitions_router
from tiers import router as tiers_router
from users import router as users_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    # Initialize the DB pool once per process.
    await db.init_pool()
    try:
        yield
    finally:
        await db.close_pool()


app = FastAPI(lifespan=lifespan)

# Allow the frontend dev server to call this API from the browser.
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def handle_service_error(_: Request, exc: ServiceError) -> JSONResponse:
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()})
    return JSONResponse(
        status_code=status_code(Outcome.BAD_REQUEST),
        content={"detail": f"Invalid request parameters: {', '.join(fields)}"},
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    # ServerErrorMiddleware re-raises after this response; the server logs the traceback.
    logger.error("unhandled_error method=%s path=%s error=%r", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code(Outcome.INTERNAL_ERROR),
        content={"detail": "Internal Server Error"},
    )


app.include_router(users_router.router, tags=["users"])
app.include_router(petitions_router.router, tags=["petitions"])
app.include_router(tiers_router.router, tags=["support tiers"])
app.include_router(media_router.router, tags=["images"])


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/")
def root() -> dict:
    return {"message": "petition api"}
