from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from app.config import get_settings
from app.database import init_db
from app.middleware.correlation import CorrelationMiddleware, get_correlation_id
from app.middleware.inflight import InFlightGuardMiddleware
from app.routes import roadmap
from app.schemas.roadmap import ErrorResponse
from app.services.exceptions import FailureKind, InvalidInputError, RoadmapGenerationError
from app.services.gateway import get_gateway
from app.utils.logger import logger
from app.utils.metrics import get_snapshot

settings = get_settings()

# HTTP status per failure kind
STATUS_BY_KIND = {
    FailureKind.INVALID_INPUT: 400,
    FailureKind.NO_RESULTS: 404,
    FailureKind.UPSTREAM_ERROR: 502,
    FailureKind.PERSISTENCE_ERROR: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name}...")
    await init_db()
    logger.info(f"Backend ready at http://{settings.backend_host}:{settings.backend_port}")
    yield


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
app.state.limiter = roadmap.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(InFlightGuardMiddleware)
app.add_middleware(CorrelationMiddleware)

# CORS - explicit origins from config. Registered last: outermost layer
allowed_origins = [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-User-ID", "X-Correlation-ID"],
)


@app.exception_handler(RoadmapGenerationError)
async def roadmap_generation_error_handler(request: Request, exc: RoadmapGenerationError):
    body = ErrorResponse(**exc.to_dict(), correlation_id=get_correlation_id() or None)
    return JSONResponse(status_code=STATUS_BY_KIND[exc.kind], content=body.model_dump(exclude_none=True))


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return await roadmap_generation_error_handler(request, InvalidInputError("; ".join(problems) or "Invalid request"))


@app.get("/health")
async def health_check():
    return {"status": "ok", "circuits": get_gateway().get_circuit_states()}


@app.get("/metrics")
async def metrics():
    return get_snapshot()


app.include_router(roadmap.router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        reload=settings.debug
    )
