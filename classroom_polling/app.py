import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from classroom_polling.api import routes_health, routes_poll, routes_room, routes_teacher, routes_ws
from classroom_polling.core.config import Settings, settings
from classroom_polling.core.exceptions import PollingError
from classroom_polling.db.core import build_engine, build_session_factory, init_db
from classroom_polling.realtime.coordinator import RoomCoordinator
from classroom_polling.realtime.groups import BroadcastGroups
from classroom_polling.scripts import seed_data

logger = logging.getLogger(__name__)


def create_app(app_settings: Settings = settings) -> FastAPI:
    logging.basicConfig(
        level=app_settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting up...")
        engine = build_engine(app_settings.DATABASE_URL, echo=app_settings.DB_ECHO)
        await init_db(engine)
        session_factory = build_session_factory(engine)
        app.state.session_factory = session_factory
        app.state.coordinator = RoomCoordinator(BroadcastGroups(), session_factory)
        if app_settings.ENV == "development":
            await seed_data.seed_data(session_factory, secret=app_settings.JWT_SECRET)
        yield  # App runs here
        logger.info("Shutting down...")
        await engine.dispose()

    app = FastAPI(
        title=app_settings.APP_NAME,
        version=app_settings.APP_VERSION,
        description="Live polling for classrooms: rooms, questions and answers in real time",
        lifespan=lifespan
    )
    app.state.settings = app_settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PollingError)
    async def polling_error_handler(request: Request, ex: PollingError):
        return JSONResponse(status_code=ex.status_code,
                            content={"success": False, "error": ex.message})

    app.include_router(routes_health.router, prefix="/api/v1")
    app.include_router(routes_teacher.router, prefix="/api/v1")
    app.include_router(routes_room.router, prefix="/api/v1")
    app.include_router(routes_poll.router, prefix="/api/v1")
    app.include_router(routes_ws.router)

    @app.get("/")
    async def root():
        return {"message": "Classroom live polling backend is running"}
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
