from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from pathlib import Path
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from .models import SessionSummary, StoredMessage

logger = logging.getLogger("floorhub.sessions")

UNTITLED = "New Chat"
TITLE_LIMIT = 48


def new_session_id() -> str:
    """Return a fresh chat session id."""
    return f"chat_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def session_title(first_message: str) -> str:
    # First non-empty line of the opening message, truncated.
    for line in first_message.splitlines():
        if line.strip():
            return line.strip()[:TITLE_LIMIT]
    return UNTITLED


class SessionStore:
    """Append-only chat transcripts with sidebar summaries, persisted as one JSON file."""

    def __init__(self, path: Optional[Path] = None, max_sessions: Optional[int] = None) -> None:
        """Purpose: Create the store and restore transcripts written by a previous run.
        Inputs/Outputs: Inputs are the JSON file path (None = memory only) and an optional
            cap on stored sessions; no return value.
        Side Effects / State: Reads the file once; evicts sessions above the cap.
        Dependencies: StoredMessage and SessionSummary for validation.
        Failure Modes: An unreadable file starts the store empty; a single broken session
            is dropped with a warning.
        If Removed: Chat history and the session sidebar are lost on restart.
        Testing Notes: Write a transcript, build a second store on the same path, compare.
        """
        # All mutation goes through the lock; reads return copies.
        self._path = path
        self._max_sessions = max_sessions if max_sessions and max_sessions > 0 else None
        self._lock = threading.Lock()
        self._transcripts: Dict[str, List[StoredMessage]] = {}
        self._summaries: Dict[str, SessionSummary] = {}
        self._eviction_listeners: List[Callable[[str], None]] = []
        self._restore()

    def _restore(self) -> None:
        if not self._path or not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("sessions file=%s unreadable: %s", self._path, exc)
            return
        for session_id, messages in raw.get("sessions", {}).items():
            try:
                self._transcripts[session_id] = [StoredMessage.model_validate(msg) for msg in messages]
            except ValidationError as exc:
                logger.warning("session=%s dropped on load: %s", session_id, exc)
        for session_id, summary in raw.get("summaries", {}).items():
            if session_id in self._transcripts:
                self._summaries[session_id] = SessionSummary.model_validate(summary)
        if self._evict_oldest():
            self._write()

    @property
    def max_sessions(self) -> Optional[int]:
        return self._max_sessions

    def add_eviction_listener(self, listener: Callable[[str], None]) -> None:
        """Call listener(session_id) for every session dropped by the max_sessions cap."""
        self._eviction_listeners.append(listener)

    def _notify_evicted(self, session_ids: List[str]) -> None:
        # Runs outside the store lock so listeners may call back into the store.
        for session_id in session_ids:
            for listener in self._eviction_listeners:
                listener(session_id)

    def _write(self) -> None:
        # Caller holds the lock (or is the constructor).
        if not self._path:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "sessions": {
                session_id: [message.model_dump() for message in messages]
                for session_id, messages in self._transcripts.items()
            },
            "summaries": {session_id: summary.model_dump() for session_id, summary in self._summaries.items()},
        }
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(self._path)

    def append(self, session_id: str, *messages: StoredMessage) -> None:
        """Purpose: Add one turn (or any run of messages) to the end of a transcript.
        Inputs/Outputs: Inputs are the session id and the messages; no return value.
        Side Effects / State: Creates the session if needed, refreshes its summary, writes
            the file.
        Dependencies: session_title, _evict_oldest, _write.
        Failure Modes: IO errors from the write propagate to the caller.
        If Removed: Chat turns are never recorded.
        Testing Notes: Two appends must keep both runs in order; the title comes from
            the very first message only.
        """
        # Earlier messages are never touched; the summary title is set once.
        if not messages:
            return
        with self._lock:
            transcript = self._transcripts.setdefault(session_id, [])
            transcript.extend(messages)
            summary = self._summaries.get(session_id)
            if summary is None or summary.title == UNTITLED:
                summary = SessionSummary(
                    session_id=session_id,
                    title=session_title(transcript[0].content),
                    updated_at=messages[-1].timestamp,
                )
                self._summaries[session_id] = summary
            else:
                summary.updated_at = messages[-1].timestamp
            evicted = self._evict_oldest()
            self._write()
        self._notify_evicted(evicted)

    def list_sessions(self) -> List[SessionSummary]:
        """Return session summaries, most recent first."""
        with self._lock:
            return sorted(self._summaries.values(), key=lambda s: s.updated_at, reverse=True)

    def get_messages(self, session_id: str) -> List[StoredMessage]:
        """Return a copy of the session transcript; unknown sessions are empty."""
        with self._lock:
            return list(self._transcripts.get(session_id, []))

    def has_session(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._transcripts

    def ensure_session(self, session_id: str) -> None:
        """Register an empty session so it shows up in the sidebar before its first message."""
        with self._lock:
            if session_id in self._transcripts:
                return
            self._transcripts[session_id] = []
            self._summaries[session_id] = SessionSummary(session_id=session_id, title=UNTITLED, updated_at=time.time())
            evicted = self._evict_oldest()
            self._write()
        self._notify_evicted(evicted)

    def clear_session(self, session_id: str) -> str:
        """Purpose: Forget a transcript and hand out the id of a fresh, empty session.
        Inputs/Outputs: Input is the session id to clear; output is the new session id.
        Side Effects / State: Removes the transcript and summary, registers the new session.
        Dependencies: new_session_id, ensure_session.
        Failure Modes: Unknown ids are ignored; a new id is still returned.
        If Removed: Users cannot start over without old turns leaking into prompts.
        Testing Notes: After clearing, the old id has no messages and the new id exists.
        """
        # Old and new session never share state.
        with self._lock:
            self._transcripts.pop(session_id, None)
            self._summaries.pop(session_id, None)
            self._write()
        fresh_id = new_session_id()
        self.ensure_session(fresh_id)
        logger.info("session=%s cleared new_session=%s", session_id, fresh_id)
        return fresh_id

    def _evict_oldest(self) -> List[str]:
        # Keep the max_sessions most recently updated sessions; returns the dropped ids.
        if self._max_sessions is None or len(self._summaries) <= self._max_sessions:
            return []
        by_age = sorted(self._summaries, key=lambda sid: self._summaries[sid].updated_at)
        evicted = by_age[: len(by_age) - self._max_sessions]
        for session_id in evicted:
            self._summaries.pop(session_id, None)
            self._transcripts.pop(session_id, None)
        logger.info("sessions evicted=%d", len(evicted))
        return evicted
