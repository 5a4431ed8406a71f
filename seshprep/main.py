"""
SeshPrep API application
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from seshprep import models  # noqa: F401  registers the tables on Base.metadata
from seshprep.api.v1 import api_router
from seshprep.config import settings
from seshprep.database import Base, engine
from seshprep.errors import SeshPrepError
from seshprep.utils.logs import configure_logging

logger = logging.getLogger(__name__)


async def seshprep_error_handler(request: Request, exc: SeshPrepError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(bind=None) -> FastAPI:
    configure_logging()
    Base.metadata.create_all(bind=bind or engine)

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, debug=settings.DEBUG)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(SeshPrepError, seshprep_error_handler)
    app.include_router(api_router)

    @app.get("/health")
    def health():
        return {"status": "ok", "app": settings.APP_NAME, "version": settings.APP_VERSION}

    logger.info("%s API ready (storage=%s, blobs=%s)", settings.APP_NAME, settings.STORAGE_BACKEND, settings.BLOB_BACKEND)
    return app


app = create_app()


def run():
    import uvicorn

    uvicorn.run("seshprep.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)


if __name__ == "__main__":
    run()
