"""FastAPI-powered JSON backend for the school canteen."""

from __future__ import annotations

import argparse
import logging
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Literal
from uuid import uuid4

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.core.config import load_settings
from src.core.dependencies import build_dependencies
from src.core.inventory import CanteenService, ValidationError


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionState:
    user: dict[str, Any]


class SessionManager:
    """Thread-safe in-memory registry of logged-in employees."""

    def __init__(self) -> None:
        self._sessions: dict[str, SessionState] = {}
        self._lock = threading.Lock()

    def create(self, user: dict[str, Any]) -> str:
        session_id = uuid4().hex
        with self._lock:
            while session_id in self._sessions:
                session_id = uuid4().hex
            self._sessions[session_id] = SessionState(user=dict(user))
        return session_id

    def get(self, session_id: str) -> SessionState | None:
        with self._lock:
            state = self._sessions.get(session_id)
            if state is None:
                return None
            return SessionState(user=dict(state.user))

    def destroy(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, description="Employee name or email")
    password: str


class LoginResponse(BaseModel):
    session_id: str
    user: dict[str, Any]


class DashboardResponse(BaseModel):
    usuario: dict[str, Any]
    produtos_baixos: list[dict[str, Any]]
    total_produtos: int
    total_mov: int


class ProductListResponse(BaseModel):
    produtos: list[dict[str, Any]]
    busca: str


class ProductCreateRequest(BaseModel):
    nome: str
    preco: float | str | None = None
    id_estoque: int | str | None = None


class ProductCreatedResponse(BaseModel):
    id: int | None


class ProductUpdateRequest(BaseModel):
    nome: str
    preco: float | str | None = None


class StockOverviewResponse(BaseModel):
    usuario: dict[str, Any]
    produtos: list[dict[str, Any]]
    movimentos: list[dict[str, Any]]


class MovementRequest(BaseModel):
    product_id: int | str
    type: Literal["entrada", "saida"]
    quantity: int | str


class MovementResponse(BaseModel):
    id_produto: int
    quantidade: int
    preco_total: float | None = None


def create_app(config_path: str = "configs/dev.yaml") -> FastAPI:
    LOGGER.info("Initialising web application with config '%s'", config_path)
    settings = load_settings(config_path)
    dependencies = build_dependencies(settings)
    session_manager = SessionManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        mode = await dependencies.data_layer.initialize()
        LOGGER.info("Data layer ready (mode=%s)", mode.value)
        yield
        await dependencies.data_layer.close()

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.dependencies = dependencies
    app.state.session_manager = session_manager

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        LOGGER.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse({"detail": str(exc)}, status_code=status.HTTP_400_BAD_REQUEST)

    def get_service() -> CanteenService:
        return dependencies.service

    def current_user(x_session_id: str | None = Header(None)) -> dict[str, Any]:
        state = session_manager.get(x_session_id) if x_session_id else None
        if state is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Login required")
        return state.user

    @app.get("/api/health")
    def healthcheck() -> dict[str, str]:  # pragma: no cover - trivial
        return {"status": "ok"}

    @app.post("/api/login", response_model=LoginResponse)
    async def login(payload: LoginRequest, service: CanteenService = Depends(get_service)) -> LoginResponse:
        user = await service.authenticate(payload.username, payload.password)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Usuário ou senha incorretos!",
            )
        session_id = session_manager.create(user)
        LOGGER.info("Session created for employee id=%s", user.get("id"))
        return LoginResponse(session_id=session_id, user=user)

    @app.post("/api/logout", status_code=status.HTTP_204_NO_CONTENT)
    def logout(x_session_id: str | None = Header(None)) -> None:
        if x_session_id:
            session_manager.destroy(x_session_id)

    @app.get("/api/dashboard", response_model=DashboardResponse)
    async def dashboard(
        user: dict[str, Any] = Depends(current_user),
        service: CanteenService = Depends(get_service),
    ) -> DashboardResponse:
        summary = await service.dashboard()
        return DashboardResponse(usuario=user, **summary)

    @app.get("/api/products", response_model=ProductListResponse)
    async def list_products(
        busca: str = Query(""),
        user: dict[str, Any] = Depends(current_user),
        service: CanteenService = Depends(get_service),
    ) -> ProductListResponse:
        products = await service.list_products(busca)
        return ProductListResponse(produtos=products, busca=busca)

    @app.post("/api/products", response_model=ProductCreatedResponse, status_code=status.HTTP_201_CREATED)
    async def create_product(
        payload: ProductCreateRequest,
        user: dict[str, Any] = Depends(current_user),
        service: CanteenService = Depends(get_service),
    ) -> ProductCreatedResponse:
        product_id = await service.create_product(payload.nome, payload.preco, payload.id_estoque)
        return ProductCreatedResponse(id=product_id)

    @app.put("/api/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def update_product(
        product_id: int,
        payload: ProductUpdateRequest,
        user: dict[str, Any] = Depends(current_user),
        service: CanteenService = Depends(get_service),
    ) -> None:
        await service.update_product(product_id, payload.nome, payload.preco)

    @app.delete("/api/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_product(
        product_id: int,
        user: dict[str, Any] = Depends(current_user),
        service: CanteenService = Depends(get_service),
    ) -> None:
        await service.delete_product(product_id)

    @app.get("/api/stock", response_model=StockOverviewResponse)
    async def stock_overview(
        user: dict[str, Any] = Depends(current_user),
        service: CanteenService = Depends(get_service),
    ) -> StockOverviewResponse:
        overview = await service.stock_overview()
        return StockOverviewResponse(usuario=user, **overview)

    @app.post("/api/stock/movements", response_model=MovementResponse)
    async def record_movement(
        payload: MovementRequest,
        user: dict[str, Any] = Depends(current_user),
        service: CanteenService = Depends(get_service),
    ) -> MovementResponse:
        result = await service.record_movement(
            user_id=user["id"],
            product_id=payload.product_id,
            movement_type=payload.type,
            quantity=payload.quantity,
        )
        return MovementResponse(**result)

    return app


def _configure_logging(debug: bool) -> None:
    root_logger = logging.getLogger()
    if root_logger.handlers:
        if debug:
            root_logger.setLevel(logging.DEBUG)
        return
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Launch the canteen backend")
    parser.add_argument("--config", default="configs/dev.yaml", help="Path to configuration file")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind the server")
    parser.add_argument("--port", type=int, default=3000, help="Port to bind the server")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    _configure_logging(debug=args.debug)
    app = create_app(config_path=args.config)

    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - defensive
        raise SystemExit("uvicorn must be installed to run the web frontend") from exc

    LOGGER.info("Starting uvicorn on %s:%s", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
