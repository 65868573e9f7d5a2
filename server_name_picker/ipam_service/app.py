import logging

import uvicorn
from fastapi import FastAPI

from server_name_picker.common import config
from server_name_picker.common.cache import TTLCache
from server_name_picker.common.http import install_error_handlers
from server_name_picker.common.logs import configure_logging
from server_name_picker.ipam_service.engine import IpEngine
from server_name_picker.ipam_service.routes import router
from server_name_picker.upstream.ipam import IpamClient

logger = logging.getLogger(__name__)


def build_engine() -> IpEngine:
    cache = TTLCache()
    return IpEngine(IpamClient(cache), cache)


def create_app(engine: IpEngine | None = None, hardened: bool = config.HARDENED_ERRORS) -> FastAPI:
    app = FastAPI(title="IpamService")
    if engine is not None:
        app.state.engine = engine

    @app.on_event("startup")
    def startup() -> None:
        if getattr(app.state, "engine", None) is None:
            app.state.engine = build_engine()
        app.state.engine.cache.start_sweeper()
        logger.info(f"IPAM service ready: upstream={app.state.engine.client.base_url}")

    @app.on_event("shutdown")
    def shutdown() -> None:
        app.state.engine.cache.stop_sweeper()

    install_error_handlers(app, hardened=hardened)
    app.include_router(router)
    return app


app = create_app()


def main() -> None:
    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=config.IPAM_SERVICE_PORT)


if __name__ == "__main__":
    main()
