# foam_export/config.py
#
# Environment-driven settings, read once at startup.
#
#   PORT                    HTTP port for the service            (8000)
#   STEP_SERVICE_URL        delegate STEP builds to this service (unset = local kernel)
#   STEP_SERVICE_TIMEOUT_S  timeout for the delegated call       (25)
#   STEP_MODE               local kernel mode: exact | visual    (exact)
#   LOG_LEVEL               logging level name                   (INFO)

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_PORT = 8000
DEFAULT_STEP_TIMEOUT_S = 25.0

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _float(raw: Optional[str], default: float) -> float:
    try:
        v = float(raw) if raw is not None else default
    except ValueError:
        return default
    return v if v > 0 else default


@dataclass(frozen=True)
class Settings:
    port: int = DEFAULT_PORT
    step_service_url: Optional[str] = None
    step_service_timeout_s: float = DEFAULT_STEP_TIMEOUT_S
    step_mode: str = "exact"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        url = (env.get("STEP_SERVICE_URL") or "").strip().rstrip("/") or None
        mode = (env.get("STEP_MODE") or "exact").strip().lower()
        try:
            port = int(env.get("PORT", DEFAULT_PORT))
        except ValueError:
            port = DEFAULT_PORT
        return cls(
            port=port,
            step_service_url=url,
            step_service_timeout_s=_float(env.get("STEP_SERVICE_TIMEOUT_S"), DEFAULT_STEP_TIMEOUT_S),
            step_mode=mode if mode in ("exact", "visual") else "exact",
            log_level=(env.get("LOG_LEVEL") or "INFO").strip().upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
