from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

BASE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class Settings:
    """Configuration container for models, storage paths, mail, and chat limits."""
    gemini_api_key: str
    gemini_model: str
    data_dir: Path
    prompts_dir: Path
    history_turns: int
    max_sessions: Optional[int]
    smtp_host: str
    smtp_port: int
    smtp_username: str
    smtp_password: str
    mail_sender: str
    sales_email: str
    max_feed_bytes: int = 20 * 1024 * 1024


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for default paths.
    Failure Modes: Invalid HISTORY_TURNS/MAX_SESSIONS/SMTP_PORT/MAX_FEED_BYTES values raise ValueError.
    If Removed: App cannot configure the LLM client, storage, or mail and fails at startup.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve data and prompt paths, then build Settings.
    data_dir = os.getenv("DATA_DIR")
    if data_dir:
        data_path = Path(data_dir)
    else:
        data_path = (BASE_DIR / "data").resolve()

    max_sessions = os.getenv("MAX_SESSIONS", "")
    smtp_username = os.getenv("SMTP_USERNAME", "")

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        data_dir=data_path,
        prompts_dir=(BASE_DIR / "prompts").resolve(),
        history_turns=int(os.getenv("HISTORY_TURNS", "5")),
        max_sessions=int(max_sessions) if max_sessions else None,
        smtp_host=os.getenv("SMTP_HOST", ""),
        smtp_port=int(os.getenv("SMTP_PORT", "587")),
        smtp_username=smtp_username,
        smtp_password=os.getenv("SMTP_PASSWORD", ""),
        mail_sender=os.getenv("MAIL_SENDER") or smtp_username,
        sales_email=os.getenv("SALES_EMAIL", ""),
        max_feed_bytes=int(os.getenv("MAX_FEED_BYTES", str(20 * 1024 * 1024))),
    )
