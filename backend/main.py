import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.database import Database
from backend.routes import appointment_routes, auth_routes, doctor_portal_routes, doctor_routes
from backend.scheduling.errors import SchedulingError

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def create_app(database: Database | None = None) -> FastAPI:
    """Build the API. Pass ``database`` to run against an existing store."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config.validate_runtime_config()
        db = database or Database(config.DATABASE_URL)
        db.open()
        try:
            db.create_schema()
        except SQLAlchemyError:
            logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')
            raise
        app.state.database = db
        try:
            yield
        finally:
            db.close()

    app = FastAPI(title='Clinic Appointment Management System API', lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    @app.exception_handler(SchedulingError)
    async def handle_scheduling_error(request: Request, exc: SchedulingError):
        return JSONResponse(status_code=exc.status_code, content={'detail': exc.message})

    @app.exception_handler(SQLAlchemyError)
    async def handle_database_error(request: Request, exc: SQLAlchemyError):
        logger.exception('Database error on %s %s', request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={'detail': 'Database unavailable. Please try again later.'},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception('Unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={'detail': 'Internal server error'},
        )

    @app.get('/health')
    def health():
        return {'status': 'ok'}

    @app.get('/api')
    def api_index():
        return {
            'message': 'Clinic Appointment Management System API',
            'endpoints': {
                'health': '/health',
                'auth': '/auth',
                'appointments': '/api/appointments',
                'doctors': '/api/doctors',
                'doctor': '/api/doctor',
            },
        }

    app.include_router(auth_routes.router, prefix='/auth')
    app.include_router(doctor_routes.router, prefix='/api/doctors')
    app.include_router(appointment_routes.router, prefix='/api/appointments')
    app.include_router(doctor_portal_routes.router, prefix='/api/doctor')

    return app


configure_logging()

app = create_app()
