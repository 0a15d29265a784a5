"""Engine settings read from the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class EngineSettings:
    credentials_path: str = "credentials.properties"
    hide_credentials: bool = False
    log_level: str = "INFO"
    http_timeout: float = 300.0
    large_input_threshold: int = 20
    large_result_threshold: int = 100000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        if environ is None:
            load_dotenv()
            environ = os.environ
        return cls(
            credentials_path=environ.get("ENACTMENT_CREDENTIALS", "credentials.properties"),
            hide_credentials=_flag(environ.get("ENACTMENT_HIDE_CREDENTIALS")),
            log_level=environ.get("ENACTMENT_LOG_LEVEL", "INFO"),
            http_timeout=float(environ.get("ENACTMENT_HTTP_TIMEOUT", "300")),
            large_input_threshold=int(environ.get("ENACTMENT_LARGE_INPUT", "20")),
            large_result_threshold=int(environ.get("ENACTMENT_LARGE_RESULT", "100000")),
        )
