import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from .errors import ModerationError
from .moderation import ModerationRequest, ModerationService
from .services.message_store import InMemoryMessageStore, RedisMessageStore
from .services.model_client import OpenAIModelClient
from .services.redis import RedisCrudService, get_redis_crud_service
from .services.session_store import InMemorySessionStore, RedisSessionStore
from .settings import get_settings


def setup_server_logging(level: str = "INFO") -> logging.Logger:
    """Configure and return the server logger."""
    logs_dir = Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("socratic_moderator")
    if logger.handlers:
        return logging.getLogger("socratic_moderator.server")

    logger.setLevel(level)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    fh = RotatingFileHandler(logs_dir / "server.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    return logging.getLogger("socratic_moderator.server")


def _cors_origins_list(origins: str) -> list[str]:
    """Parse CORS_ORIGINS into a list."""
    if not origins or origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in origins.split(",") if o.strip()]


settings = get_settings()
LOGGER = setup_server_logging(settings.log_level)


class ModerateBody(BaseModel):
    content: Any = None
    parent_id: str | None = None
    username: str = "User"
    column_type: str = "claim"
    room_id: str | None = None


async def _connect_redis() -> RedisCrudService | None:
    """Return a connected Redis CRUD service, or None to fall back to memory."""
    redis_crud = get_redis_crud_service()
    if redis_crud is None:
        LOGGER.info("REDIS_URL not set; using in-memory stores")
        return None
    try:
        await redis_crud.connect()
    except (RedisConnectionError, RedisTimeoutError, ConnectionError, TimeoutError) as e:
        LOGGER.warning("Redis unavailable, using in-memory stores: %s", e)
        return None
    return redis_crud


def build_service(
    redis_crud: RedisCrudService | None, model_client: OpenAIModelClient
) -> ModerationService:
    if redis_crud is None:
        session_store: Any = InMemorySessionStore()
        message_store: Any = InMemoryMessageStore()
    else:
        session_store = RedisSessionStore(redis_crud, ttl_seconds=settings.session_ttl_seconds)
        message_store = RedisMessageStore(redis_crud, ttl_seconds=settings.message_ttl_seconds)
    return ModerationService(
        session_store=session_store,
        message_store=message_store,
        model_client=model_client,
    )


def create_app(service: ModerationService | None = None) -> FastAPI:
    """Build the HTTP app. A prebuilt service skips Redis and model-client setup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Construct stores and the model client once; release them on shutdown."""
        redis_crud: RedisCrudService | None = None
        model_client: OpenAIModelClient | None = None
        if service is not None:
            app.state.moderation = service
        else:
            redis_crud = await _connect_redis()
            model_client = OpenAIModelClient(settings)
            app.state.moderation = build_service(redis_crud, model_client)
        LOGGER.info("Moderation service ready")

        yield

        LOGGER.info("Shutting down...")
        if model_client is not None:
            await model_client.close()
        if redis_crud is not None:
            await redis_crud.close()

    app = FastAPI(
        title="Socratic Moderator",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins_list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Health check for load balancers and monitoring."""
        return {"status": "ok"}

    @app.post("/api/moderate")
    async def moderate(body: ModerateBody, request: Request) -> JSONResponse:
        """Moderate one discussion message.

        Input (JSON):
            {
                "content": str - raw message text (required),
                "parent_id": str | null - message this reply hangs off,
                "username": str - author display name,
                "column_type": str - type the author picked,
                "room_id": str - room the message belongs to
            }

        Responses:
            200 {"type", "short_feedback", "guiding_question", "contradicts",
                 "reasoning_score", "novel", "discussion_stage"}
            200 {"skipped": true, "reason": "low_quality" | "duplicate"}
            400 {"error": "content is required"}
            500 {"error": str}
        """
        if not isinstance(body.content, str) or not body.content.strip():
            return JSONResponse({"error": "content is required"}, status_code=400)

        moderation: ModerationService = request.app.state.moderation
        try:
            outcome = await moderation.moderate(
                ModerationRequest(
                    content=body.content,
                    room_id=body.room_id or settings.default_room_id,
                    username=body.username,
                    column_type=body.column_type,
                    parent_id=body.parent_id,
                )
            )
        except ModerationError as e:
            LOGGER.exception("Moderation failed: %s", e)
            return JSONResponse({"error": "Failed to save AI response"}, status_code=500)
        except Exception as e:
            LOGGER.exception("Moderate API error: %s", e)
            return JSONResponse({"error": "Internal server error"}, status_code=500)
        return JSONResponse(asdict(outcome))

    @app.get("/api/rooms/{room_id}/state")
    async def room_state(room_id: str, request: Request) -> dict[str, Any]:
        """Stored session state plus the compact metrics the model would see."""
        state, metrics = await request.app.state.moderation.room_state(room_id)
        return {"state": asdict(state), "metrics": asdict(metrics)}

    @app.get("/api/rooms/{room_id}/analytics")
    async def room_analytics(room_id: str, request: Request) -> dict[str, Any]:
        return asdict(await request.app.state.moderation.room_analytics(room_id))

    @app.get("/api/rooms/{room_id}/messages")
    async def room_messages(room_id: str, request: Request, limit: int = 20) -> dict[str, Any]:
        """Most recent moderator replies stored for the room, oldest first."""
        messages = await request.app.state.moderation.room_messages(room_id, limit)
        return {"messages": messages}

    @app.post("/api/rooms/{room_id}/nudge")
    async def nudge(room_id: str, request: Request) -> dict[str, Any]:
        """One Socratic question about the latest human message; nothing is stored."""
        return asdict(await request.app.state.moderation.nudge(room_id))

    return app


app = create_app()
