import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from fixmycity.config.database import Database
from fixmycity.config.settings import Settings
from fixmycity.config.settings import settings as default_settings
from fixmycity.features.admins.router import router as admins_router
from fixmycity.features.auth.router import router as auth_router
from fixmycity.features.complaints.router import router as complaints_router
from fixmycity.features.dashboard.router import router as dashboard_router
from fixmycity.features.departments.router import router as departments_router
from fixmycity.features.public.router import router as public_router
from fixmycity.features.upload.router import router as upload_router
from fixmycity.features.users.router import router as users_router
from fixmycity.utils.errors import FixMyCityError, format_validation_errors
from fixmycity.utils.imagekit import ImageKitClient
from fixmycity.utils.logger import init_logging
from fixmycity.utils.security import TokenService

logger = logging.getLogger("fixmycity.main")


def register_error_handlers(app: FastAPI):
    @app.exception_handler(FixMyCityError)
    async def handle_app_error(request: Request, exc: FixMyCityError):
        if exc.status_code >= 500:
            logger.error(exc.message, extra={"path": request.url.path, "method": request.method})
        else:
            logger.info(exc.message, extra={"path": request.url.path, "status": exc.status_code})
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": format_validation_errors(exc.errors())})

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("500 Internal Server Error", extra={"path": request.url.path, "method": request.method})
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Settings = None, database: Database = None, image_store: ImageKitClient = None) -> FastAPI:
    settings = settings or default_settings
    init_logging(settings)

    app = FastAPI(title=settings.PROJECT_NAME)
    app.state.settings = settings
    app.state.database = database or Database(settings.DATABASE_URL)
    app.state.token_service = TokenService(settings)
    app.state.image_store = image_store or ImageKitClient(settings)

    # Create Database Tables
    app.state.database.create_all()

    # Credentials (the refresh cookie) require explicit origins in browsers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(complaints_router)
    app.include_router(departments_router)
    app.include_router(public_router)
    app.include_router(upload_router)
    app.include_router(users_router)
    app.include_router(admins_router)
    app.include_router(dashboard_router)

    @app.get("/")
    def read_root():
        return {"message": f"{settings.PROJECT_NAME} is running"}

    return app


app = create_app()
