"""Chat response routing pipeline.

Role:
    Runs one user message through classify -> product lookup -> knowledge
    selection -> composition and appends the finished turn to the session
    transcript. The handler in ChatPipeline.handle_message is the only place
    where failures are turned into a user-visible apology.

Pipeline data contract (fields passed across steps):
    - intent: article code and supplementary flag from the classifier.
    - decision: product-lookup outcome when a code was found and a feed is loaded.
    - selected: knowledge items chosen for a general question.
    - reply: the composed payload; once set, later steps are skipped.

Session context:
    The knowledge catalog, product index, and persona are captured once per
    session id (KnowledgeSnapshot) and reused until the session is cleared or
    evicted. The cache is an LRU bounded by the session cap (or
    SNAPSHOT_CACHE_LIMIT when sessions are unbounded); a session pushed out of
    the cache reloads fresh data on its next message.
    Two messages of one session may run concurrently; their turns are appended
    in completion order.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .composer import ComposedReply, ResponseComposer
from .intent import IntentResult, classify
from .knowledge.knowledge_store import KnowledgeSnapshot, KnowledgeStore
from .knowledge.selector import KnowledgeSelector
from .models import StoredMessage
from .payloads import PlainTextPayload, payload_text
from .product_lookup import LookupDecision, resolve
from .session_store import SessionStore, new_session_id
from .step_runner import PipelineStep, StepRunner

logger = logging.getLogger("floorhub.chat")

APOLOGY_TEXT = "Извините, произошла ошибка при обработке вашего запроса. Попробуйте ещё раз."
SNAPSHOT_CACHE_LIMIT = 256


@dataclass
class PipelineContext:
    """Mutable context passed through each pipeline step."""
    session_id: str
    user_message: str
    history_tail: List[str]
    snapshot: KnowledgeSnapshot
    intent: Optional[IntentResult] = None
    decision: Optional[LookupDecision] = None
    selected: List = field(default_factory=list)
    reply: Optional[ComposedReply] = None
    thinking_logs: List[Dict[str, str]] = field(default_factory=list)

    def log(self, event: str, detail: str, status: str = "success") -> None:
        """Append a structured step log entry for debugging."""
        self.thinking_logs.append({"event": event, "detail": detail, "status": status})


@dataclass
class ChatTurn:
    """Result of one handled message."""
    session_id: str
    user_message: StoredMessage
    assistant_message: StoredMessage
    route: str
    failed: bool = False


class ChatPipeline:
    def __init__(
        self,
        llm,
        knowledge_store: KnowledgeStore,
        session_store: SessionStore,
        prompts_dir: Path,
        history_turns: int = 5,
        max_snapshots: Optional[int] = None,
    ) -> None:
        """Purpose: Initialize the chat pipeline runner and dependencies.
        Inputs/Outputs: Inputs are the LLM client, knowledge and session stores, prompt
            directory, history length, and snapshot cache size; no return value.
        Side Effects / State: Constructs a StepRunner with ordered steps and subscribes to
            session evictions so their snapshots are released.
        Dependencies: Uses KnowledgeSelector, ResponseComposer, and step methods.
        Failure Modes: None at init; runtime errors occur within step functions.
        If Removed: The chat endpoint cannot answer messages.
        Testing Notes: Instantiate with a fake LLM and verify the step order.
        """
        # Store dependencies and build the step runner.
        self._knowledge_store = knowledge_store
        self._session_store = session_store
        self._history_turns = history_turns
        self._selector = KnowledgeSelector(llm, prompts_dir)
        self._composer = ResponseComposer(llm, prompts_dir)
        self._snapshots: "OrderedDict[str, KnowledgeSnapshot]" = OrderedDict()
        self._snapshots_lock = threading.Lock()
        self._max_snapshots = max_snapshots or session_store.max_sessions or SNAPSHOT_CACHE_LIMIT
        session_store.add_eviction_listener(self.end_session)
        self._runner = StepRunner(
            steps=[
                PipelineStep("classify", self._step_classify),
                PipelineStep("product_lookup", self._step_product_lookup, skip_if=_skip_product_lookup),
                PipelineStep("knowledge_select", self._step_knowledge_select, skip_if=_has_reply),
                PipelineStep("compose", self._step_compose, skip_if=_has_reply),
            ]
        )

    def snapshot_for(self, session_id: str) -> KnowledgeSnapshot:
        """Return the session's knowledge snapshot, loading it on first use."""
        with self._snapshots_lock:
            snapshot = self._snapshots.get(session_id)
            if snapshot is not None:
                self._snapshots.move_to_end(session_id)
                return snapshot
            snapshot = self._knowledge_store.snapshot()
            self._snapshots[session_id] = snapshot
            while len(self._snapshots) > self._max_snapshots:
                self._snapshots.popitem(last=False)
            return snapshot

    def cached_snapshots(self) -> int:
        with self._snapshots_lock:
            return len(self._snapshots)

    def end_session(self, session_id: str) -> None:
        """Drop the cached snapshot so the next session starts from fresh data."""
        with self._snapshots_lock:
            self._snapshots.pop(session_id, None)

    def clear_session(self, session_id: str) -> str:
        """Clear the transcript and snapshot of a session; returns the new session id."""
        self.end_session(session_id)
        return self._session_store.clear_session(session_id)

    def handle_message(self, session_id: Optional[str], user_message: str) -> ChatTurn:
        """Purpose: Answer one user message and append the turn to the session transcript.
        Inputs/Outputs: Inputs are an optional session id and the message text; output is
            a ChatTurn with both stored messages.
        Side Effects / State: Calls the LLM as needed and appends two messages to the store.
        Dependencies: Uses StepRunner, SessionStore, and the session snapshot.
        Failure Modes: Any exception from a step is logged and replaced by the apology
            message; prior history is left untouched and nothing is retried.
        If Removed: The chat endpoint has no recovery boundary.
        Testing Notes: Make the fake LLM raise and verify the apology and history length.
        """
        # Record the user message first so ordering within the turn is stable.
        session_id = session_id or new_session_id()
        user_entry = StoredMessage(
            id=uuid.uuid4().hex,
            role="user",
            content=user_message,
            timestamp=time.time(),
        )
        logger.info("session=%s question=%s", session_id, user_message)

        failed = False
        try:
            history = self._session_store.get_messages(session_id)
            context = PipelineContext(
                session_id=session_id,
                user_message=user_message,
                history_tail=self._history_tail(history, user_entry),
                snapshot=self.snapshot_for(session_id),
            )
            executed = self._runner.run(context, label=session_id)
            reply = context.reply
            if reply is None:
                raise RuntimeError(f"pipeline finished without a reply after steps={executed}")
        except Exception:
            logger.exception("session=%s step=handle_message status=error", session_id)
            failed = True
            reply = ComposedReply(payload=PlainTextPayload(text=APOLOGY_TEXT), route="error")

        assistant_entry = StoredMessage(
            id=uuid.uuid4().hex,
            role="assistant",
            content=payload_text(reply.payload),
            timestamp=time.time(),
            attachments=reply.attachments,
            payload=reply.payload,
        )
        self._session_store.append(session_id, user_entry, assistant_entry)
        logger.info("session=%s route=%s kind=%s", session_id, reply.route, reply.payload.kind)
        return ChatTurn(
            session_id=session_id,
            user_message=user_entry,
            assistant_message=assistant_entry,
            route=reply.route,
            failed=failed,
        )

    def _history_tail(self, history: List[StoredMessage], current: StoredMessage) -> List[str]:
        # Last N turns including the current message, rendered as "role: text".
        recent = (history + [current])[-self._history_turns :]
        return [f"{message.role}: {message.content}" for message in recent]

    def _step_classify(self, context: PipelineContext) -> None:
        context.intent = classify(context.user_message)
        context.log(
            "classify",
            f"code={context.intent.article_code} supplementary={context.intent.wants_supplementary}",
        )
        logger.info(
            "session=%s step=classify code=%s supplementary=%s",
            context.session_id,
            context.intent.article_code,
            context.intent.wants_supplementary,
        )

    def _step_product_lookup(self, context: PipelineContext) -> None:
        """Purpose: Resolve an article code and compose the lookup reply.
        Inputs/Outputs: Input is PipelineContext; sets decision and reply.
        Side Effects / State: May call the selector (LLM) for supplementary material.
        Dependencies: Uses resolve, KnowledgeSelector, and ResponseComposer.compose_lookup.
        Failure Modes: LLM errors propagate to handle_message.
        If Removed: Article codes are answered by the general knowledge path.
        Testing Notes: Exact code -> product_info; unknown code -> not_found text.
        """
        # The selector runs lazily, only on the supplementary branch.
        intent = context.intent
        snapshot = context.snapshot
        context.decision = resolve(
            intent.article_code,
            intent.wants_supplementary,
            snapshot.product_index,
            lambda: self._selector.select(
                context.user_message, context.history_tail, snapshot.items, session_id=context.session_id
            ),
        )
        context.log("product_lookup", type(context.decision).__name__)
        context.reply = self._composer.compose_lookup(
            context.decision, context.user_message, context.history_tail, snapshot.persona
        )

    def _step_knowledge_select(self, context: PipelineContext) -> None:
        context.selected = self._selector.select(
            context.user_message,
            context.history_tail,
            context.snapshot.items,
            session_id=context.session_id,
        )
        context.log("knowledge_select", f"selected={len(context.selected)}")

    def _step_compose(self, context: PipelineContext) -> None:
        snapshot = context.snapshot
        context.reply = self._composer.compose_knowledge(
            context.selected,
            context.user_message,
            context.history_tail,
            snapshot.items,
            snapshot.persona,
        )
        context.log("compose", context.reply.route)


def _has_reply(context: PipelineContext) -> bool:
    return context.reply is not None


def _skip_product_lookup(context: PipelineContext) -> bool:
    # Codes only route to the lookup when the session has a product feed.
    return (
        context.intent is None
        or context.intent.article_code is None
        or context.snapshot.product_index is None
    )
