"""FastAPI application exposing the user management endpoints."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Generic, List, Optional, TypeVar

import anyio
from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .config import Settings, load_settings
from .errors import ConflictError, NotFoundError, ValidationError
from .models import User, UserInput
from .seed import SeedFetcher
from .startup import SeedingOrchestrator
from .users import UserService

logger = logging.getLogger("usermanagement.api")

T = TypeVar("T")


class UserPayload(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None
    website: Optional[str] = None
    company: Optional[str] = None

    def to_input(self) -> UserInput:
        return UserInput(
            name=self.name,
            email=self.email,
            phone=self.phone,
            website=self.website,
            company=self.company,
        )


class UserView(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    email: str
    phone: Optional[str] = None
    website: Optional[str] = None
    company: Optional[str] = None
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope shared by every ``/api/users`` response."""

    success: bool
    data: Optional[T] = None
    message: str = ""
    errors: Optional[List[str]] = None


def user_to_view(user: User) -> UserView:
    return UserView(
        id=user.id,
        name=user.name,
        email=user.email,
        phone=user.phone,
        website=user.website,
        company=user.company,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _failure(status_code: int, message: str, errors: List[str]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "data": None, "message": message, "errors": errors},
    )


def _format_request_error(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    message = str(error.get("msg", "Invalid value"))
    return f"{location}: {message}" if location else message


def register_user_routes(app: FastAPI, service: UserService) -> None:
    """Expose the user CRUD and search endpoints on ``app``."""

    router = APIRouter(prefix="/api/users", tags=["users"])

    def get_service() -> UserService:
        return service

    @router.get("", response_model=ApiResponse[List[UserView]])
    async def list_users(svc: UserService = Depends(get_service)) -> ApiResponse[List[UserView]]:
        users = [user_to_view(user) for user in svc.list_all()]
        return ApiResponse[List[UserView]](
            success=True, data=users, message="Users retrieved successfully"
        )

    @router.get("/search", response_model=ApiResponse[List[UserView]])
    async def search_users(
        term: Optional[str] = Query(default=None, alias="searchTerm"),
        svc: UserService = Depends(get_service),
    ) -> ApiResponse[List[UserView]]:
        users = [user_to_view(user) for user in svc.search(term)]
        return ApiResponse[List[UserView]](
            success=True,
            data=users,
            message=f"Found {len(users)} user(s) matching search term",
        )

    @router.get("/{user_id}", response_model=ApiResponse[UserView])
    async def read_user(user_id: int, svc: UserService = Depends(get_service)) -> ApiResponse[UserView]:
        user = svc.get_by_id(user_id)
        return ApiResponse[UserView](
            success=True, data=user_to_view(user), message="User retrieved successfully"
        )

    @router.post("", status_code=status.HTTP_201_CREATED, response_model=ApiResponse[UserView])
    async def create_user(
        payload: UserPayload,
        response: Response,
        svc: UserService = Depends(get_service),
    ) -> ApiResponse[UserView]:
        user = svc.create(payload.to_input())
        response.headers["Location"] = f"/api/users/{user.id}"
        return ApiResponse[UserView](
            success=True, data=user_to_view(user), message="User created successfully"
        )

    @router.put("/{user_id}", response_model=ApiResponse[UserView])
    async def update_user(
        user_id: int,
        payload: UserPayload,
        svc: UserService = Depends(get_service),
    ) -> ApiResponse[UserView]:
        user = svc.update(user_id, payload.to_input())
        return ApiResponse[UserView](
            success=True, data=user_to_view(user), message="User updated successfully"
        )

    @router.delete("/{user_id}", response_model=ApiResponse[bool])
    async def delete_user(user_id: int, svc: UserService = Depends(get_service)):
        if not svc.delete(user_id):
            return _failure(
                status.HTTP_404_NOT_FOUND, f"User with ID {user_id} not found", ["User does not exist"]
            )
        return ApiResponse[bool](success=True, data=True, message="User deleted successfully")

    app.include_router(router)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def handle_validation_error(_: Request, exc: ValidationError) -> JSONResponse:
        return _failure(status.HTTP_400_BAD_REQUEST, "Validation failed", exc.errors)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        messages = [_format_request_error(error) for error in exc.errors()]
        return _failure(status.HTTP_400_BAD_REQUEST, "Validation failed", messages)

    @app.exception_handler(ConflictError)
    async def handle_conflict(_: Request, exc: ConflictError) -> JSONResponse:
        return _failure(status.HTTP_409_CONFLICT, "Email already exists in the system", [str(exc)])

    @app.exception_handler(NotFoundError)
    async def handle_not_found(_: Request, exc: NotFoundError) -> JSONResponse:
        return _failure(status.HTTP_404_NOT_FOUND, str(exc), ["User does not exist"])

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception while processing %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return _failure(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An internal server error occurred",
            ["An unexpected error occurred. Please try again later."],
        )


def create_app(
    *,
    settings: Settings | None = None,
    service: UserService | None = None,
    fetcher: SeedFetcher | None = None,
    seed_on_startup: bool | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the user management service."""

    app_settings = settings or load_settings()
    user_service = service or UserService()
    seed_fetcher = fetcher or SeedFetcher(
        app_settings.seed_url,
        timeout=app_settings.seed_timeout,
        max_attempts=app_settings.seed_max_attempts,
    )
    orchestrator = SeedingOrchestrator(seed_fetcher, user_service)
    run_seed = app_settings.seed_on_startup if seed_on_startup is None else seed_on_startup

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if run_seed:
            await anyio.to_thread.run_sync(orchestrator.run)
        else:
            logger.info("Startup seeding disabled")
        yield

    app = FastAPI(
        title="User Management API",
        version="1.0.0",
        description="RESTful API for managing users with CRUD operations",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(app_settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = app_settings
    app.state.service = user_service
    app.state.orchestrator = orchestrator

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    register_user_routes(app, user_service)
    register_error_handlers(app)
    return app


__all__ = ["ApiResponse", "UserPayload", "UserView", "create_app", "user_to_view"]
