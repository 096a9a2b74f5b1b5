import logging
from collections.abc import Iterable

DEFAULT_QUIET_PATHS = ("/healthz", "/readyz")


class HealthEndpointFilter(logging.Filter):
    """Drop successful probe requests from access logs; keep failures visible."""

    def __init__(self, paths: Iterable[str] = DEFAULT_QUIET_PATHS, name: str = "") -> None:
        super().__init__(name)
        self.paths = tuple(paths)

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if any(f" {path} " in message or f" {path}?" in message for path in self.paths):
            return " 200 " not in message
        return True
