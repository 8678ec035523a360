from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_BACKEND_DIR = Path(__file__).resolve().parents[1]

DEFAULT_LLM_URL = "http://localhost:1235/v1/chat/completions"
DEFAULT_GRAPH_PATH = _BACKEND_DIR / "checkin_data" / "checkin_graph.json"


def _load_local_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def bootstrap_local_env() -> None:
    repo_root = _BACKEND_DIR.parent
    for candidate in (repo_root / ".env", _BACKEND_DIR / ".env"):
        if candidate.exists():
            _load_local_env_file(candidate)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    db_path: str
    graph_path: str
    router_fallback: str = "first"
    llm_url: str = DEFAULT_LLM_URL
    llm_model: str = "meditron-7b"
    llm_api_key: str | None = None
    llm_timeout_seconds: float = 30.0
    llm_disabled: bool = False
    log_level: str = "INFO"
    history_chars: int = 2000
    allowed_origins: tuple[str, ...] = ("http://localhost:3000",)

    @classmethod
    def from_env(cls) -> "Settings":
        fallback = (os.getenv("CHECKIN_ROUTER_FALLBACK") or "first").strip().lower()
        if fallback not in {"first", "last"}:
            fallback = "first"
        origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
        return cls(
            db_path=os.getenv("CHECKIN_DB_PATH", str(_BACKEND_DIR / "checkin.sqlite")),
            graph_path=os.getenv("CHECKIN_GRAPH_PATH", str(DEFAULT_GRAPH_PATH)),
            router_fallback=fallback,
            llm_url=(os.getenv("CHECKIN_LLM_URL") or DEFAULT_LLM_URL).strip(),
            llm_model=(os.getenv("CHECKIN_LLM_MODEL") or "meditron-7b").strip(),
            llm_api_key=(os.getenv("CHECKIN_LLM_API_KEY") or "").strip() or None,
            llm_timeout_seconds=float(os.getenv("CHECKIN_LLM_TIMEOUT_SECONDS", "30")),
            llm_disabled=_env_flag("CHECKIN_LLM_DISABLED"),
            log_level=(os.getenv("CHECKIN_LOG_LEVEL") or "INFO").strip().upper(),
            history_chars=int(os.getenv("CHECKIN_HISTORY_CHARS", "2000")),
            allowed_origins=tuple(origin.strip() for origin in origins if origin.strip()),
        )
