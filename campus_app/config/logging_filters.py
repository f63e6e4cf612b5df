import logging
import re
from collections.abc import Iterable

HEALTH_PROBE_PATHS: tuple[str, ...] = ("/healthz", "/readyz")

# Request line followed by the response status, as written by both the
# Django dev server and the gunicorn access log format.
_REQUEST_STATUS_RE = re.compile(r'"(?:GET|HEAD) (?P<path>[^ ?"]+)[^"]*" (?P<status>\d{3}) ')


class HealthEndpointFilter(logging.Filter):
    """Drop access lines for successful (2xx) health probes.

    Failing probes stay visible so an unhealthy instance shows up in the logs.
    """

    def __init__(self, paths: Iterable[str] = HEALTH_PROBE_PATHS) -> None:
        super().__init__()
        self.paths = frozenset(paths)

    def filter(self, record: logging.LogRecord) -> bool:
        match = _REQUEST_STATUS_RE.search(record.getMessage())
        if match is None or match.group("path") not in self.paths:
            return True
        return not match.group("status").startswith("2")
