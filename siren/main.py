import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session, sessionmaker
from starlette.responses import JSONResponse

from siren.api.routes import api_router
from siren.core.clock import Clock, utcnow
from siren.core.config import settings
from siren.core.errors import ServiceError
from siren.db.session import SessionLocal
from siren.services.container import build_services
from siren.services.push_gateway import PushGateway
from siren.tasks.expire_codes import CodeExpirySweeper

logger = logging.getLogger(__name__)


def create_app(
    session_factory: sessionmaker[Session] | None = None,
    push_gateway: PushGateway | None = None,
    clock: Clock = utcnow,
    start_sweeper: bool | None = None,
) -> FastAPI:
    logging.basicConfig(level=logging.INFO)
    services = build_services(session_factory or SessionLocal, push_gateway=push_gateway, clock=clock)
    sweeper = CodeExpirySweeper(services.code_store)
    run_sweeper = settings.auth_code_sweep_enabled if start_sweeper is None else start_sweeper

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if run_sweeper:
            sweeper.start()
        try:
            yield
        finally:
            sweeper.stop()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.services = services

    # CORS
    # allow_credentials must be False when origins is "*"
    cors_origins = settings.cors_origins
    allow_creds = cors_origins != "*"
    if cors_origins == "*":
        cors_origins = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=allow_creds,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def inject_client_id(request: Request, call_next):
        client_id = request.headers.get(settings.client_id_header)
        if client_id:
            request.state.client_id = client_id
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": {"kind": "internal", "code": "internal_error", "message": "internal_error"},
                },
            )
        return response

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": {"kind": exc.kind, "code": exc.code, "message": exc.detail}},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = [{"loc": [str(part) for part in err["loc"]], "msg": err["msg"]} for err in exc.errors()]
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "error": {
                    "kind": "validation_error",
                    "code": "invalid_payload",
                    "message": "Request payload failed validation",
                    "fields": fields,
                },
            },
        )

    app.include_router(api_router)
    return app


app = create_app()
