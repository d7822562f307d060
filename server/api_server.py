"""FastAPI application entry point for book_ai_bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.meta.MetaClientInterface import MetaClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.meta.MetaClientManager import MetaClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from server.core.QueryService import QueryService
from server.errors import register_exception_handlers
from server.routers.ChatRouter import router as chat_router
from server.routers.QueryRouter import router as query_router
from server.routers.SitemapRouter import router as sitemap_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)

    llm_client = LLMClientManager(helper_config=app.state.helper_config).get_client()
    rag_client = RAGClientManager(helper_config=app.state.helper_config).get_client()
    meta_client = MetaClientManager(helper_config=app.state.helper_config).get_client()
    clients = [meta_client, rag_client, llm_client]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    app.state.llm_client = llm_client
    app.state.rag_client = rag_client
    app.state.meta_client = meta_client
    app.state.query_service = QueryService(
        helper_config=app.state.helper_config,
        rag_client=rag_client,
        llm_client=llm_client,
        meta_client=meta_client,
    )

    await check_connections(meta_client, rag_client, llm_client)
    await rag_client.do_ensure_collection()

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    for client in clients:
        await client.close()
    logging.info("All clients closed.")


def create_app(with_lifespan: bool = True) -> FastAPI:
    """Build the API application. Tests pass with_lifespan=False and fill app.state themselves."""
    app = FastAPI(
        title="book_ai_bridge",
        description=(
            "Book library backend: catalogue search over the metadata store, "
            "semantic search over book passages and a chat that answers only "
            "from the library's own text."
        ),
        version=app_version,
        lifespan=lifespan if with_lifespan else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(query_router)
    app.include_router(chat_router)
    app.include_router(sitemap_router)
    return app


async def check_connections(
    meta_client: MetaClientInterface,
    rag_client: RAGClientInterface,
    llm_client: LLMClientInterface,
) -> None:
    """Check connectivity to all configured backends on startup.

    LLM failures are non-fatal (catalogue search still works, chat will
    fail later). Metadata and RAG failures are fatal.

    Raises:
        RuntimeError: If the metadata store or the RAG backend is not reachable.
    """
    if not await meta_client.do_healthcheck():
        raise RuntimeError(f"Metadata store '{meta_client.get_engine_name()}' is not reachable. Cannot serve queries.")

    if not await rag_client.do_healthcheck():
        raise RuntimeError(f"RAG client '{rag_client.get_engine_name()}' is not reachable. Cannot serve queries.")

    if not llm_client.has_api_key():
        logging.warning("No LLM API key configured: chat and semantic search are disabled.")
    elif not await llm_client.do_healthcheck():
        logging.warning("LLM client '%s' is not reachable. Chat and semantic search may fail.", llm_client.get_engine_name())


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting book_ai_bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
