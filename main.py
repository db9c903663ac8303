import inspect
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from openai import AsyncOpenAI

from dal.analysis_dal import AnalysisDAL
from dal.chat_dal import ChatSessionDAL
from dal.record_store import RecordStore
from dal.user_dal import UserDAL
from models.errors import AgriAssistError
from routes.ai_route import router as ai_router
from routes.chatbot_route import router as chatbot_router
from routes.image_route import router as image_router
from routes.profile_route import router as profile_router
from services.analysis_lifecycle import AnalysisLifecycleManager
from services.binary_store import BinaryStore
from services.chat.chat_provider import OpenAIChatProvider
from services.classifier.factory import build_classifier_capability
from services.classifier.lazy_capability import LazyCapability
from services.conversation_manager import ConversationSessionManager
from services.ownership import OwnershipGuard
from utils.config import AppConfig
from utils.database_init import AsyncDatabaseInitializer

load_dotenv()  # Load environment variables from .env file if present


async def _close_client(client: Any) -> None:
    """Close an SDK client that exposes close/aclose, sync or async."""
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        if inspect.iscoroutinefunction(aclose):
            await aclose()
        else:
            result = aclose()
            if inspect.isawaitable(result):
                await result
    except Exception as exc:
        logging.warning("Error while closing %s: %s", type(client).__name__, exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite record store (at DATABASE_DIR/app.db)
      - the upload directory served under /uploads
      - the OpenAI async client, when OPENAI_API_KEY is set
      - the lazily loaded classifier and the chat provider
    and attach the resulting services to `app.state`.
    """
    config: AppConfig = app.state.config or AppConfig.from_env()
    app.state.config = config
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db_initializer = AsyncDatabaseInitializer(config.database_dir, reset=config.reset_database)
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    # Stored images are served from /uploads/images/<filename>.
    upload_dir = Path(config.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=upload_dir), name="uploads")

    openai_client: Optional[AsyncOpenAI] = None
    if config.openai_api_key:
        try:
            openai_client = AsyncOpenAI(api_key=config.openai_api_key)
        except Exception as exc:
            raise RuntimeError("Failed to initialize OpenAI Async client") from exc
    else:
        logging.warning("OPENAI_API_KEY is not set; chat replies come from the local knowledge base")
    app.state.openai_client = openai_client

    binaries = BinaryStore(upload_dir / "images")
    classifier: LazyCapability = app.state.classifier_override or build_classifier_capability(
        config, binaries, openai_client
    )
    chat_provider = app.state.chat_provider_override
    if chat_provider is None and openai_client is not None:
        chat_provider = OpenAIChatProvider(openai_client, model=config.chat_model)

    store = RecordStore(db_initializer)
    users = UserDAL(store)
    app.state.users = users
    app.state.classifier = classifier
    app.state.lifecycle = AnalysisLifecycleManager(
        AnalysisDAL(store),
        users,
        binaries,
        classifier,
        guard=OwnershipGuard(),
        classify_timeout=config.classifier_timeout,
        max_upload_bytes=config.max_upload_bytes,
    )
    app.state.conversations = ConversationSessionManager(
        ChatSessionDAL(store),
        chat_provider,
        provider_timeout=config.chat_timeout,
        history_limit=config.chat_history_limit,
    )

    try:
        yield
    finally:
        await classifier.aclose()
        if openai_client is not None:
            await _close_client(openai_client)


def create_app(
    config: Optional[AppConfig] = None,
    *,
    classifier: Optional[LazyCapability] = None,
    chat_provider: Optional[Any] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Args:
        config: Settings to use; read from the environment at startup when omitted.
        classifier: Replaces the configured classifier capability.
        chat_provider: Replaces the OpenAI chat provider.
    """
    app = FastAPI(title="AgriAssist API", lifespan=lifespan)
    app.state.config = config
    app.state.classifier_override = classifier
    app.state.chat_provider_override = chat_provider

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins if config else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AgriAssistError)
    async def handle_domain_error(request: Request, exc: AgriAssistError):
        if exc.status_code >= 500:
            logging.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})

    @app.get("/api/health")
    async def health(request: Request):
        """
        Simple health check reporting which optional capabilities are configured.
        """
        state = request.app.state
        classifier = getattr(state, "classifier", None)
        return {
            "success": True,
            "status": "OK",
            "db_initialized": hasattr(state, "db_initializer"),
            "openai_available": getattr(state, "openai_client", None) is not None,
            "classifier_loaded": bool(classifier and classifier.loaded),
        }

    # Register application routers
    app.include_router(image_router)
    app.include_router(ai_router)
    app.include_router(chatbot_router)
    app.include_router(profile_router)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000)
