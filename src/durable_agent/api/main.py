"""FastAPI app entrypoint for the durable agent service."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Request, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field, field_validator

from durable_agent.broadcast import AgentState, BroadcasterHub, QueueObserver
from durable_agent.config.log import configure_logging
from durable_agent.config.settings import Settings, get_settings
from durable_agent.errors import RunNotFoundError
from durable_agent.gateway import ChatCompletionsGateway, LLMGateway
from durable_agent.graph.controller import AgentLoopController
from durable_agent.graph.runner import RunManager, RunStatusView
from durable_agent.steps import RetryPolicy
from durable_agent.storage import InMemoryStorage, PostgresStorage, Storage
from durable_agent.tools import ToolRegistry, build_registry

logger = logging.getLogger(__name__)


class StartRunRequest(BaseModel):
    task: str

    @field_validator("task")
    @classmethod
    def _task_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Task must not be empty")
        return value


class StartRunResponse(BaseModel):
    instanceId: str


class ResetRequest(BaseModel):
    instanceId: str | None = Field(default=None)


def build_storage(settings: Settings) -> Storage:
    database_url = settings.resolved_database_url()
    if database_url:
        return PostgresStorage(database_url)
    logger.warning("storage event=in_memory reason=no database url configured")
    return InMemoryStorage()


def build_run_manager(
    *,
    settings: Settings,
    storage: Storage,
    hub: BroadcasterHub,
    gateway: LLMGateway | None = None,
    registry: ToolRegistry | None = None,
) -> RunManager:
    if gateway is None:
        if not settings.resolved_llm_api_key():
            logger.warning("gateway event=no_api_key url=%s", settings.llm_base_url)
        gateway = ChatCompletionsGateway(
            api_key=settings.resolved_llm_api_key(),
            base_url=settings.llm_base_url,
            timeout_s=settings.llm_timeout_s,
            auth_header=settings.llm_auth_header,
        )
    controller = AgentLoopController(
        storage=storage,
        registry=registry
        or build_registry(
            github_api_url=settings.github_api_url,
            github_token=settings.github_token,
            github_timeout_s=settings.github_timeout_s,
        ),
        gateway=gateway,
        hub=hub,
        model=settings.llm_model,
        max_turns=settings.max_turns,
        max_tokens=settings.llm_max_tokens,
        llm_policy=RetryPolicy(
            max_attempts=settings.llm_max_attempts,
            backoff=settings.llm_retry_backoff,
            delay_s=settings.llm_retry_delay_s,
        ),
        tool_policy=RetryPolicy(
            max_attempts=settings.tool_max_attempts,
            backoff=settings.tool_retry_backoff,
            delay_s=settings.tool_retry_delay_s,
        ),
    )
    return RunManager(
        storage=storage,
        controller=controller,
        hub=hub,
        default_agent_id=settings.default_agent_id,
        max_workers=settings.worker_threads,
    )


def create_app(
    *,
    storage: Storage | None = None,
    settings_override: Settings | None = None,
    gateway: LLMGateway | None = None,
    registry: ToolRegistry | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    configure_logging(settings.log_level)
    run_storage = storage or build_storage(settings)
    hub = BroadcasterHub()
    manager = build_run_manager(
        settings=settings,
        storage=run_storage,
        hub=hub,
        gateway=gateway,
        registry=registry,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        run_storage.migrate()
        if settings.resume_on_startup:
            manager.resume_incomplete()
        yield
        manager.shutdown(wait=False)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.storage = run_storage
    app.state.hub = hub
    app.state.manager = manager

    @app.exception_handler(RequestValidationError)
    async def validation_error(_: Request, exc: RequestValidationError) -> PlainTextResponse:
        messages = [str(item.get("msg", "invalid request")) for item in exc.errors()]
        return PlainTextResponse("; ".join(messages) or "Invalid request", status_code=400)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/tools")
    def tools() -> dict[str, list[str]]:
        return {"tools": manager.controller.registry.names()}

    @app.post("/api", response_model=StartRunResponse)
    def start_run(payload: StartRunRequest) -> StartRunResponse:
        return StartRunResponse(instanceId=manager.start(payload.task))

    @app.get("/api", response_model=RunStatusView)
    def run_status(instanceId: str | None = None) -> Any:
        if not instanceId:
            return PlainTextResponse("Invalid API request", status_code=400)
        try:
            return manager.status(instanceId)
        except RunNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Run not found") from exc

    @app.post("/api/reset", response_class=PlainTextResponse)
    def reset(payload: ResetRequest | None = Body(default=None)) -> str:
        manager.reset(payload.instanceId if payload else None)
        return "OK"

    @app.get("/agents/{agent_id}/state", response_model=AgentState)
    def agent_state(agent_id: str) -> AgentState:
        return hub.get(agent_id).snapshot()

    @app.websocket("/agents/{agent_id}")
    async def agent_updates(websocket: WebSocket, agent_id: str) -> None:
        await websocket.accept()
        queue: asyncio.Queue[AgentState] = asyncio.Queue()
        subscription = hub.get(agent_id).subscribe(
            QueueObserver(asyncio.get_running_loop(), queue)
        )
        receiver = asyncio.create_task(_wait_for_disconnect(websocket))
        try:
            while True:
                getter = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait(
                    {getter, receiver}, return_when=asyncio.FIRST_COMPLETED
                )
                if getter not in done:
                    getter.cancel()
                    break
                await websocket.send_json(getter.result().model_dump())
        finally:
            subscription.unsubscribe()
            receiver.cancel()

    return app


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message.get("type") == "websocket.disconnect":
            return


app = create_app()
