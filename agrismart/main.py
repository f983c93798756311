"""
AgriSmart API

Crop yield estimation, fertilizer planning, optimization advice,
simulated field sensors and live weather.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn

from agrismart import __version__
from agrismart.core.logger import setup_logging
from agrismart.routers.agrismart import router, shutdown_services


def create_app() -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await shutdown_services(app.dependency_overrides)

    app = FastAPI(
        title="AgriSmart API",
        description="Crop yield estimation, fertilizer planning and field monitoring.",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(router)

    @app.get("/", summary="Health check")
    def read_root():
        return {"status": "AgriSmart API is online", "version": __version__}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("agrismart.main:app", host="0.0.0.0", port=8000)
