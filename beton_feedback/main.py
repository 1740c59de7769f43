import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from beton_feedback.core import config
from beton_feedback.core.log_setup import configure_logging
from beton_feedback.database import Base, engine
from beton_feedback.models import evaluation, user  # noqa: F401  registers tables
from beton_feedback.routes import admin_routes, events_routes, public_routes
from beton_feedback.state import AppState

configure_logging()
logger = logging.getLogger(__name__)


def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.validate_runtime_config()
    initialize_database()
    logger.info('Feedback API started (admin auth scheme: %s)', config.ADMIN_AUTH_SCHEME)
    yield
    logger.info('Feedback API stopped')


def validation_error_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return 'Invalid request'
    first = errors[0]
    message = str(first.get('msg', 'Invalid request'))
    if message.startswith('Value error, '):
        return message[len('Value error, '):]
    location = '.'.join(str(part) for part in first.get('loc', ()) if part != 'body')
    return f'{location}: {message}' if location else message


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail
        if exc.status_code == 404 and detail == 'Not Found':
            detail = 'Route not found'
        return JSONResponse(
            status_code=exc.status_code,
            content={'success': False, 'error': detail},
            headers=getattr(exc, 'headers', None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={'success': False, 'error': validation_error_message(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error('Unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={'success': False, 'error': 'Internal server error'})


def create_app(state: AppState | None = None) -> FastAPI:
    app = FastAPI(title='BETON-30 Feedback API', lifespan=lifespan)
    app.state.feedback = state or AppState()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    @app.middleware('http')
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = int((time.perf_counter() - start) * 1000)
        logger.info('%s %s %s %dms', request.method, request.url.path, response.status_code, latency_ms)
        return response

    register_error_handlers(app)

    @app.get('/')
    def root():
        return {'status': 'Feedback API Running'}

    @app.get('/health')
    def health():
        return {'status': 'OK', 'timestamp': datetime.now(timezone.utc).isoformat()}

    app.include_router(public_routes.router)
    if config.LEGACY_UPDATE_ADMIN_ENABLED:
        app.include_router(public_routes.legacy_router)
    app.include_router(admin_routes.router)
    app.include_router(events_routes.router)

    return app


app = create_app()
