"""
Access logging: one record per handled connection.

Records go to the "debughttp.access" logger, separate from the
operational loggers, so they can be routed or silenced on their own:

    logging.getLogger("debughttp.access").setLevel(logging.WARNING)
"""

import json
import logging
import time
from dataclasses import dataclass, asdict


logger = logging.getLogger("debughttp.access")


@dataclass
class AccessLogEntry:
    """
    Structured log entry for one connection.

    method and path are "-" when the request could not be parsed.
    """

    connection_id: str
    listener: str
    client_ip: str
    method: str
    path: str
    query: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        """Common-log style line."""
        target = f"{self.path}?{self.query}" if self.query else self.path
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {target}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms [{self.listener}]'
        )


def log_access(entry: AccessLogEntry, log_format: str = "text") -> None:
    """
    Emit an entry. Server errors log at WARNING, everything else at INFO.
    """
    level = logging.WARNING if entry.status_code >= 500 else logging.INFO
    if not logger.isEnabledFor(level):
        return
    if log_format == "json":
        logger.log(level, json.dumps(entry.to_dict()))
    else:
        logger.log(level, entry.to_text())


def access_timestamp() -> str:
    return time.strftime("%d/%b/%Y:%H:%M:%S %z")
