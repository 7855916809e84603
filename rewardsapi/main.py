import logging

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from mangum import Mangum
from starlette.middleware.cors import CORSMiddleware

from rewardsapi import containers
from rewardsapi.config import settings
from rewardsapi.core.exception_handlers import (
    handle_base_api_exception,
    handle_http_exception,
    handle_unexpected_error,
    handle_validation_error,
)
from rewardsapi.core.exceptions import BaseAPIException
from rewardsapi.core.logging_middleware import LoggingMiddleware
from rewardsapi.logging_config import setup_logging
from rewardsapi.routers import (
    cron_router,
    health_router,
    mission_router,
    point_router,
    referral_router,
    reward_router,
)

load_dotenv("rewardsapi/.env")

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
    app.container = containers.Container()  # type: ignore

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(BaseAPIException, handle_base_api_exception)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(health_router.router)
    for router_module in (
        point_router,
        mission_router,
        reward_router,
        referral_router,
        cron_router,
    ):
        app.include_router(router_module.router, prefix=settings.API_V1_STR)

    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    return app


app = create_app()

handler = Mangum(app)
