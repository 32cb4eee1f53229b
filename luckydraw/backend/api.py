"""FastAPI endpoints for the lucky draw session, admin tools and websocket sync."""

from __future__ import annotations

from typing import Any

from fastapi import Depends, FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from .config import load_settings
from .errors import BackingStoreError, LuckyDrawError
from .service import GameService
from .state import public_view
from .store import create_store

EXPORT_FILENAME = "lucky-draw-results.csv"


class LoginRequest(BaseModel):
    member: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1, max_length=200)


class LoginResponse(BaseModel):
    member: str
    result: int | float | None
    state: dict[str, Any]


class DrawRequest(BaseModel):
    member: str = Field(min_length=1, max_length=100)
    boxId: int = Field(ge=1)


class DrawResponse(BaseModel):
    reward: int | float
    state: dict[str, Any]


class StateResponse(BaseModel):
    state: dict[str, Any]


class ResetRequest(BaseModel):
    pin: str
    confirmation: str


class StateWebSocketHub:
    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)

    async def send_state(self, websocket: WebSocket, state: dict[str, Any]) -> None:
        await websocket.send_json({"type": "state.full", "state": state})

    async def broadcast_state(self, state: dict[str, Any]) -> None:
        stale_connections: list[WebSocket] = []
        for websocket in list(self._connections):
            try:
                await self.send_state(websocket, state)
            except RuntimeError:
                stale_connections.append(websocket)
        for websocket in stale_connections:
            self.disconnect(websocket)


def _default_service() -> GameService:
    settings = load_settings()
    return GameService(store=create_store(settings), settings=settings)


def create_app(service: GameService | None = None) -> FastAPI:
    app = FastAPI(title="Lucky Draw API", version="0.3.0")
    game_service = service if service is not None else _default_service()
    websocket_hub = StateWebSocketHub()
    app.state.websocket_hub = websocket_hub
    app.state.service = game_service

    async def publish_state(state: dict[str, Any]) -> None:
        await websocket_hub.broadcast_state(state=public_view(state))

    app.state.publish_state = publish_state

    @app.exception_handler(LuckyDrawError)
    async def handle_game_error(request: Request, exc: LuckyDrawError) -> JSONResponse:
        message = exc.message
        if isinstance(exc, BackingStoreError):
            message = "The game store is temporarily unavailable. Please refresh and try again."
        return JSONResponse(status_code=exc.status_code, content={"error": message, "reason": exc.reason})

    def get_service() -> GameService:
        return game_service

    def require_admin(
        password: str = Query(min_length=1),
        local_service: GameService = Depends(get_service),
    ) -> GameService:
        local_service.authenticate_admin(password)
        return local_service

    @app.get("/api/state", response_model=StateResponse)
    def get_state(local_service: GameService = Depends(get_service)) -> StateResponse:
        return StateResponse(state=public_view(local_service.get_state()))

    @app.post("/api/login", response_model=LoginResponse)
    def post_login(payload: LoginRequest, local_service: GameService = Depends(get_service)) -> LoginResponse:
        login = local_service.login(member=payload.member, password=payload.password)
        return LoginResponse(member=login.member, result=login.result, state=public_view(login.state))

    @app.post("/api/draw", response_model=DrawResponse)
    async def post_draw(payload: DrawRequest, local_service: GameService = Depends(get_service)) -> DrawResponse:
        result = await run_in_threadpool(local_service.draw, member=payload.member, box_id=payload.boxId)
        await publish_state(result.state)
        return DrawResponse(reward=result.reward, state=public_view(result.state))

    @app.get("/api/admin/stats")
    def get_stats(local_service: GameService = Depends(require_admin)) -> dict[str, Any]:
        return local_service.stats().as_dict()

    @app.get("/api/admin/export")
    def get_export(local_service: GameService = Depends(require_admin)) -> Response:
        return Response(
            content=local_service.export_csv(),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
        )

    @app.post("/api/admin/reset", response_model=StateResponse)
    async def post_reset(payload: ResetRequest, local_service: GameService = Depends(require_admin)) -> StateResponse:
        state = await run_in_threadpool(local_service.reset, pin=payload.pin, confirmation=payload.confirmation)
        await publish_state(state)
        return StateResponse(state=public_view(state))

    @app.websocket("/ws/state")
    async def state_ws(websocket: WebSocket, local_service: GameService = Depends(get_service)) -> None:
        await websocket_hub.connect(websocket)
        state = await run_in_threadpool(local_service.get_state)
        await websocket_hub.send_state(websocket=websocket, state=public_view(state))

        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            websocket_hub.disconnect(websocket)

    return app


app = create_app()
