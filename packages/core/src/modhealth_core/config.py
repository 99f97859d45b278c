"""Configuration utilities for the Modular Health services."""
from dataclasses import dataclass, field
from typing import Optional
import os
from pathlib import Path
from dotenv import load_dotenv  # type: ignore


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name)
    return val if val not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    try:
        return int(raw) if raw is not None else default
    except ValueError:
        return default


@dataclass
class Settings:
    # Read at instantiation so values loaded by load_backend_env() are honoured.
    database_url: Optional[str] = field(default_factory=lambda: _env("MODHEALTH_DB_URL", _env("MODHEALTH_DATABASE_URL", None)))
    secret_key: Optional[str] = field(default_factory=lambda: _env("SECRET_KEY", None))
    admin_token: Optional[str] = field(default_factory=lambda: _env("ADMIN_TOKEN", None))
    access_token_expire_hours: int = field(default_factory=lambda: _env_int("ACCESS_TOKEN_EXPIRE_HOURS", 12))
    # Upper bound on the number of days a single planning request may expand.
    planner_max_days: int = field(default_factory=lambda: _env_int("MODHEALTH_PLANNER_MAX_DAYS", 366))
    auto_log_source: str = field(default_factory=lambda: _env("MODHEALTH_AUTO_LOG_SOURCE", "routine"))

    def repo_root(self) -> str:
        cur = os.path.abspath(os.path.dirname(__file__))
        markers = ("pyproject.toml", ".git")
        for _ in range(8):
            if any(os.path.exists(os.path.join(cur, m)) for m in markers):
                return cur
            parent = os.path.dirname(cur)
            if parent == cur:
                break
            cur = parent
        # packages/core/src/modhealth_core -> repo root
        return os.path.abspath(os.path.join(os.path.dirname(__file__), "../../../../"))

    def load_backend_env(self) -> None:
        """Load canonical backend env file if present (idempotent)."""
        env_file = Path(self.repo_root()) / "config" / "env" / ".env.backend"
        if env_file.exists():
            load_dotenv(env_file, override=False)

    def resolve_path(self, p: Optional[str]) -> Optional[str]:
        if not p:
            return None
        if os.path.isabs(p):
            return p
        return os.path.abspath(os.path.join(self.repo_root(), p))

    def data_dir(self) -> str:
        return self.resolve_path("data") or os.path.join(self.repo_root(), "data")
