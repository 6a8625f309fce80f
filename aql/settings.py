from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import orjson
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError


_PROJECT_ROOT = Path(__file__).resolve().parents[1]
_CONFIG_PATH = _PROJECT_ROOT / "config" / "config.json"

# Canonical credential names. Older scripts used prefixed copies of the same
# values; those are reported, never read.
URL_ENV = "SUPABASE_URL"
ANON_KEY_ENV = "SUPABASE_ANON_KEY"
SERVICE_KEY_ENV = "SUPABASE_SERVICE_KEY"
_LEGACY_PREFIXES = ("VITE_", "NEXT_PUBLIC_")


class _ArtifactsCfg(BaseModel):
    base_dir: str
    keep_trail_copy_in_db: bool = True


class _BackendCfg(BaseModel):
    timeout_s: float = 15
    schema_name: str = Field("public", alias="schema")


class _ApiCfg(BaseModel):
    base_url: str
    timeout_s: float = 10


class _RawConfig(BaseModel):
    artifacts: _ArtifactsCfg
    backend: _BackendCfg
    api: _ApiCfg
    dashboard: Optional[Dict[str, Any]] = None
    local_store: Optional[Dict[str, Any]] = None
    monitor: Optional[Dict[str, Any]] = None
    sessions: Optional[Dict[str, Any]] = None
    logging: Optional[Dict[str, Any]] = None


class Settings(BaseModel):
    artifacts_base_dir: str = Field(..., description="Base directory for maintenance trails")
    artifacts: Dict[str, Any]
    backend: Dict[str, Any]
    api: Dict[str, Any]
    dashboard: Dict[str, Any]
    local_store: Dict[str, Any]
    monitor: Dict[str, Any]
    sessions: Dict[str, Any]
    logging: Dict[str, Any]

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        path = config_path or _CONFIG_PATH
        load_dotenv(dotenv_path=_PROJECT_ROOT / ".env", override=False)

        try:
            raw_bytes = path.read_bytes()
        except FileNotFoundError as e:
            raise ConfigError(f"Missing config file at {path}") from e
        try:
            raw_obj = orjson.loads(raw_bytes)
        except orjson.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file: {path}") from e
        try:
            validated = _RawConfig.model_validate(raw_obj)
        except ValidationError as e:
            raise ConfigError(f"Invalid config structure: {e}") from e

        dashboard_cfg = {"default_time_filter": "This month"}
        if validated.dashboard:
            dashboard_cfg.update(validated.dashboard)

        local_store_cfg = {"path": "aql_local.db"}
        if validated.local_store:
            local_store_cfg.update(validated.local_store)

        monitor_cfg = {"poll_interval_s": 5}
        if validated.monitor:
            monitor_cfg.update(validated.monitor)

        sessions_cfg = {"dir": "sessions"}
        if validated.sessions:
            sessions_cfg.update(validated.sessions)

        logging_cfg = {"level": "INFO"}
        if validated.logging:
            logging_cfg.update(validated.logging)

        return cls(
            artifacts_base_dir=validated.artifacts.base_dir,
            artifacts=validated.artifacts.model_dump(),
            backend={
                "timeout_s": validated.backend.timeout_s,
                "schema": validated.backend.schema_name,
            },
            api=validated.api.model_dump(),
            dashboard=dashboard_cfg,
            local_store=local_store_cfg,
            monitor=monitor_cfg,
            sessions=sessions_cfg,
            logging=logging_cfg,
        )

    @property
    def cfg_hash(self) -> str:
        from hashlib import sha256

        try:
            raw_bytes = _CONFIG_PATH.read_bytes()
        except FileNotFoundError:
            raw_bytes = b"{}"
        try:
            obj = orjson.loads(raw_bytes)
        except orjson.JSONDecodeError:
            obj = {}
        canonical = orjson.dumps(obj, option=orjson.OPT_SORT_KEYS)
        return sha256(canonical).hexdigest()

    def backend_credentials(self, service: bool = False) -> Tuple[str, str]:
        """Return (url, key) for the hosted backend.

        With ``service=True`` the service-role key is preferred and the anon
        key is used when it is absent.
        """
        url = os.getenv(URL_ENV, "").strip()
        key_names = [SERVICE_KEY_ENV, ANON_KEY_ENV] if service else [ANON_KEY_ENV]
        key = ""
        for name in key_names:
            key = os.getenv(name, "").strip()
            if key:
                break

        missing = []
        if not url:
            missing.append(URL_ENV)
        if not key:
            missing.append(" or ".join(key_names))
        if missing:
            message = f"Missing backend configuration: {', '.join(missing)}"
            aliases = self.legacy_env_aliases()
            if aliases:
                message += f" (found legacy names {', '.join(aliases)}; rename them)"
            raise ConfigError(message)
        return url.rstrip("/"), key

    @staticmethod
    def legacy_env_aliases() -> List[str]:
        found = []
        for canonical in (URL_ENV, ANON_KEY_ENV, SERVICE_KEY_ENV):
            for prefix in _LEGACY_PREFIXES:
                name = prefix + canonical
                if os.getenv(name):
                    found.append(name)
        return found

    def _project_path(self, value: str) -> Path:
        p = Path(value)
        if not p.is_absolute():
            p = _PROJECT_ROOT / p
        return p

    def artifacts_dir_for(self, run_id: str) -> Path:
        base = self._project_path(self.artifacts_base_dir)
        run_dir = base / run_id
        base.mkdir(parents=True, exist_ok=True)
        run_dir.mkdir(parents=True, exist_ok=True)
        return run_dir

    def sessions_dir(self) -> Path:
        p = self._project_path(self.sessions.get("dir", "sessions"))
        p.mkdir(parents=True, exist_ok=True)
        return p

    def local_store_path(self) -> Path:
        override = os.getenv("AQL_LOCAL_DB")
        if override:
            return Path(override)
        return self._project_path(self.local_store.get("path", "aql_local.db"))


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or settings.logging.get("level", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Singleton settings instance for convenience
settings = Settings.load()
