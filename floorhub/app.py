from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query, Request

from .calculator import CalculatorUnavailable, Quote, calculate_quote
from .chat_pipeline import ChatPipeline
from .config import Settings, load_settings
from .entity_store import EntityNotFound, EntityStore
from .feed_loader import FeedError, sync_feed
from .gemini_client import GeminiClient
from .knowledge.knowledge_store import KnowledgeStore
from .mailer import MailError, Mailer
from .models import (
    AISettingsUpdate,
    CategoryCreate,
    ChatRequest,
    ChatResponse,
    FAQCreate,
    FeedSyncResponse,
    KnowledgeCreate,
    KnowledgeUpdate,
    OrderRequest,
    QuoteEmailRequest,
    QuoteRequest,
    VideoCreate,
)
from .orders import email_quote, place_order
from .portal import get_ai_settings, list_faqs, list_videos, search_knowledge, update_ai_settings
from .session_store import SessionStore

BASE_DIR = Path(__file__).resolve().parent

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)
else:
    load_dotenv()

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("floorhub").setLevel(log_level)
logger = logging.getLogger("floorhub.api")


def create_app(
    settings: Optional[Settings] = None,
    llm: Any = None,
    mailer: Optional[Mailer] = None,
) -> FastAPI:
    """Purpose: Build the FastAPI application with its stores, LLM client, and routes.
    Inputs/Outputs: Optional Settings, LLM client, and mailer overrides; returns FastAPI.
    Side Effects / State: Creates the data directory and loads persisted stores.
    Dependencies: Uses load_settings, GeminiClient, EntityStore, SessionStore, ChatPipeline.
    Failure Modes: Missing GEMINI_API_KEY raises ValueError when no llm is injected.
    If Removed: The service has no HTTP surface.
    Testing Notes: Pass a fake LLM and a tmp DATA_DIR, then drive routes with TestClient.
    """
    # Wire stores and the pipeline once per application instance.
    settings = settings or load_settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)

    entity_store = EntityStore(settings.data_dir / "entities.json")
    session_store = SessionStore(settings.data_dir / "sessions.json", max_sessions=settings.max_sessions)
    mailer = mailer or Mailer(settings)
    pipeline = ChatPipeline(
        llm=llm if llm is not None else GeminiClient(settings),
        knowledge_store=KnowledgeStore(entity_store),
        session_store=session_store,
        prompts_dir=settings.prompts_dir,
        history_turns=settings.history_turns,
    )

    app = FastAPI(title="Floor Service Hub Assistant")
    app.state.settings = settings
    app.state.entity_store = entity_store
    app.state.session_store = session_store
    app.state.pipeline = pipeline
    app.state.mailer = mailer

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/chat", response_model=ChatResponse)
    def chat(request: ChatRequest) -> ChatResponse:
        """Purpose: Answer a chat message and return the assistant reply.
        Inputs/Outputs: Input is ChatRequest; output is ChatResponse with the stored reply.
        Side Effects / State: Appends the user message and reply to the session transcript.
        Dependencies: Uses ChatPipeline.handle_message.
        Failure Modes: Blank messages return 422; pipeline failures become the apology reply.
        If Removed: Core chat functionality is unavailable.
        Testing Notes: Send a message with a known article code and verify product_info.
        """
        # The pipeline recovers from its own failures; only input is checked here.
        if not request.message.strip():
            raise HTTPException(status_code=422, detail="Message is empty")
        turn = pipeline.handle_message(request.session_id, request.message)
        return ChatResponse(session_id=turn.session_id, message=turn.assistant_message)

    @app.get("/api/sessions")
    def list_sessions() -> List[dict]:
        """Return session summaries, most recent first."""
        return [summary.model_dump() for summary in session_store.list_sessions()]

    @app.get("/api/sessions/{session_id}")
    def get_session(session_id: str) -> dict:
        """Purpose: Return all messages for a given session.
        Inputs/Outputs: Input is session_id; output is a dict with message list.
        Side Effects / State: None.
        Dependencies: Uses SessionStore.get_messages.
        Failure Modes: Unknown session returns empty message list.
        If Removed: Frontend cannot load a session transcript.
        Testing Notes: Request a known session and verify message payloads.
        """
        # Serialize stored messages with their payload variants.
        messages = session_store.get_messages(session_id)
        return {
            "session_id": session_id,
            "messages": [message.model_dump() for message in messages],
        }

    @app.post("/api/sessions/{session_id}/clear")
    def clear_session(session_id: str) -> Dict[str, str]:
        return {"session_id": pipeline.clear_session(session_id)}

    @app.get("/api/knowledge/public")
    def public_knowledge(
        q: Optional[str] = None,
        item_type: Optional[str] = Query(default=None, alias="type"),
        category: Optional[str] = None,
    ) -> List[dict]:
        return search_knowledge(entity_store, q, item_type, category)

    @app.get("/api/knowledge")
    def list_knowledge(sort: str = "-created_date") -> List[dict]:
        return entity_store.entity("KnowledgeBase").list(sort)

    @app.post("/api/knowledge", status_code=201)
    def create_knowledge(item: KnowledgeCreate) -> dict:
        record = entity_store.entity("KnowledgeBase").create(item.model_dump())
        logger.info("knowledge item=%s type=%s created", record["id"], record["type"])
        return record

    @app.patch("/api/knowledge/{item_id}")
    def update_knowledge(item_id: str, item: KnowledgeUpdate) -> dict:
        try:
            return entity_store.entity("KnowledgeBase").update(item_id, item.model_dump(exclude_unset=True))
        except EntityNotFound as exc:
            raise HTTPException(status_code=404, detail=f"Knowledge item {item_id} not found") from exc

    @app.delete("/api/knowledge/{item_id}")
    def delete_knowledge(item_id: str) -> Dict[str, str]:
        try:
            entity_store.entity("KnowledgeBase").delete(item_id)
        except EntityNotFound as exc:
            raise HTTPException(status_code=404, detail=f"Knowledge item {item_id} not found") from exc
        return {"deleted": item_id}

    @app.post("/api/knowledge/{item_id}/feed", response_model=FeedSyncResponse)
    async def upload_feed(item_id: str, request: Request) -> FeedSyncResponse:
        """Purpose: Replace the products stored on an xml_feed knowledge item.
        Inputs/Outputs: Input is the raw XML request body; output is the product count.
        Side Effects / State: Updates the KnowledgeBase record; new sessions see the feed.
        Dependencies: Uses feed_loader.sync_feed.
        Failure Modes: Unknown item -> 404; oversized body -> 413; empty body, bad XML,
            or non-feed item -> 422.
        If Removed: The product catalog cannot be refreshed.
        Testing Notes: Upload a two-offer feed and verify products_count == 2.
        """
        # Raw body, not JSON; sessions already running keep their snapshot.
        raw = await request.body()
        if len(raw) > settings.max_feed_bytes:
            raise HTTPException(status_code=413, detail="Feed body is too large")
        if not raw.strip():
            raise HTTPException(status_code=422, detail="Feed body is empty")
        try:
            item = sync_feed(entity_store, item_id, raw)
        except EntityNotFound as exc:
            raise HTTPException(status_code=404, detail=f"Knowledge item {item_id} not found") from exc
        except FeedError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return FeedSyncResponse(item_id=item.id, products_count=len(item.feed_products()))

    @app.get("/api/faq")
    def faq(q: Optional[str] = None, category: Optional[str] = None) -> Dict[str, List[dict]]:
        return list_faqs(entity_store, q, category)

    @app.post("/api/faq", status_code=201)
    def create_faq(entry: FAQCreate) -> dict:
        return entity_store.entity("FAQ").create(entry.model_dump())

    @app.post("/api/faq/categories", status_code=201)
    def create_faq_category(category: CategoryCreate) -> dict:
        return entity_store.entity("FAQCategory").create(category.model_dump())

    @app.get("/api/videos")
    def videos(q: Optional[str] = None, category: Optional[str] = None) -> Dict[str, List[dict]]:
        return list_videos(entity_store, q, category)

    @app.post("/api/videos", status_code=201)
    def create_video(video: VideoCreate) -> dict:
        return entity_store.entity("Video").create(video.model_dump())

    @app.post("/api/videos/categories", status_code=201)
    def create_video_category(category: CategoryCreate) -> dict:
        return entity_store.entity("VideoCategory").create(category.model_dump())

    @app.get("/api/settings")
    def read_settings() -> dict:
        return get_ai_settings(entity_store, settings.gemini_model)

    @app.put("/api/settings")
    def save_settings(update: AISettingsUpdate) -> dict:
        """Save assistant settings; a new persona applies to sessions started afterwards."""
        return update_ai_settings(entity_store, update, settings.gemini_model)

    @app.post("/api/calculator", response_model=Quote)
    def calculator(request: QuoteRequest) -> Quote:
        try:
            return calculate_quote(request.product, request.area, request.layout, request.discount_percent)
        except CalculatorUnavailable as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

    @app.post("/api/calculator/email", response_model=Quote)
    def calculator_email(request: QuoteEmailRequest) -> Quote:
        """Purpose: Calculate a quote and e-mail it to the customer.
        Inputs/Outputs: Input is QuoteEmailRequest; output is the Quote that was sent.
        Side Effects / State: Sends one e-mail over SMTP.
        Dependencies: Uses orders.email_quote and Mailer.
        Failure Modes: Missing product data -> 422; SMTP failure -> 502.
        If Removed: Customers cannot receive their calculation by mail.
        Testing Notes: Inject a mock mailer and assert the recipient and subject.
        """
        # Calculator refusal is checked before any mail is attempted.
        try:
            return email_quote(mailer, request)
        except CalculatorUnavailable as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except MailError as exc:
            raise HTTPException(status_code=502, detail=f"Не удалось отправить письмо: {exc}") from exc

    @app.post("/api/orders")
    def create_order(request: OrderRequest) -> dict:
        return place_order(entity_store, mailer, request, settings.sales_email)

    return app


def main() -> None:
    """Run the API with uvicorn using HOST/PORT from the environment."""
    uvicorn.run(
        create_app(),
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_level=log_level_name.lower(),
    )


if __name__ == "__main__":
    main()
