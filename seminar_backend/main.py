import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from seminar_backend import state
from seminar_backend.auth.pending_store import run_periodic_sweep
from seminar_backend.core import config
from seminar_backend.core.errors import install_exception_handlers
from seminar_backend.core.logging_config import configure_logging
from seminar_backend.database import ensure_schema, ping_database
from seminar_backend.routes import auth_routes, report_routes, topic_routes, user_routes

configure_logging()
config.validate_runtime_config()

logger = logging.getLogger(__name__)

app = FastAPI(title='Seminar Report API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS or ['*'],
    allow_credentials=bool(config.CORS_ORIGINS),
    allow_methods=['*'],
    allow_headers=['*'],
)

install_exception_handlers(app)

_sweep_task: asyncio.Task | None = None


@app.on_event('startup')
async def start_background_work() -> None:
    global _sweep_task

    try:
        ensure_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')

    state.email_outbox.start()
    _sweep_task = asyncio.create_task(
        run_periodic_sweep(
            [state.registration_store, state.reset_store],
            config.PENDING_SWEEP_INTERVAL_SECONDS,
        )
    )
    logger.info('Seminar Report API started (%s, storage=%s)', config.APP_ENV, config.STORAGE_BACKEND)


@app.on_event('shutdown')
async def stop_background_work() -> None:
    global _sweep_task

    if _sweep_task is not None:
        _sweep_task.cancel()
        try:
            await _sweep_task
        except asyncio.CancelledError:
            pass
        _sweep_task = None
    await state.email_outbox.stop()


@app.get('/health')
def health():
    return {'status': 'ok', 'message': 'Server is running'}


@app.get('/api/test')
def diagnostics():
    return {
        'message': 'API is working',
        'database': 'connected' if ping_database() else 'unavailable',
        'pendingRegistrations': len(state.registration_store),
        'pendingPasswordResets': len(state.reset_store),
        'emailOutboxRunning': state.email_outbox.running,
    }


app.include_router(auth_routes.router, prefix='/api/auth')
app.include_router(topic_routes.router, prefix='/api/topics')
app.include_router(report_routes.router, prefix='/api/reports')
app.include_router(user_routes.router, prefix='/api/users')
