"""
Test doubles for toolkit tests: manual clocks, a recording retry sleep
and an in-memory case API.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from legajos.core.abort import AbortSignal
from legajos.core.exceptions import (
    RemoteNotFoundError,
    TerminalRemoteError,
    TransientRemoteError,
)
from legajos.infrastructure.http.fetcher import LegajoEndpoints

BASE_URL = "https://api.test/v1"


class FakeMonotonicClock:
    """Manually advanced float clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUtcClock:
    """Manually advanced datetime clock for progress tests."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingSleep:
    """Retry sleep that records requested delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeCaseApi:
    """
    In-memory FetchJson implementation.

    Responses are keyed by URL; a list value is served in order, one item
    per call, and the last item repeats. Exceptions are raised.
    """

    def __init__(self, endpoints: LegajoEndpoints):
        self.endpoints = endpoints
        self.responses: Dict[str, List[Any]] = {}
        self.calls: List[str] = []

    def set_record(
        self,
        legajo_id: str,
        actas: Any = None,
        articulos: Any = None,
        estados: Any = None,
        giros: Any = None,
    ) -> None:
        self.responses[self.endpoints.actas(legajo_id)] = [actas or []]
        self.responses[self.endpoints.articulos(legajo_id)] = [articulos or []]
        self.responses[self.endpoints.historial_estados(legajo_id)] = [
            estados or []
        ]
        self.responses[self.endpoints.historial_giros(legajo_id)] = [giros or []]

    def script(self, url: str, *results: Any) -> None:
        self.responses[url] = list(results)

    def calls_to(self, url: str) -> int:
        return self.calls.count(url)

    async def __call__(self, url: str, signal: Optional[AbortSignal] = None) -> Any:
        self.calls.append(url)
        if signal is not None:
            signal.throw_if_aborted()
        queue = self.responses.get(url)
        if not queue:
            raise RemoteNotFoundError(url=url)
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, BaseException):
            raise result
        return result


def server_error(url: str = BASE_URL) -> TransientRemoteError:
    return TransientRemoteError(
        message="Remote error: 500 Internal Server Error", status=500, url=url
    )


def bad_request(url: str = BASE_URL) -> TerminalRemoteError:
    return TerminalRemoteError(
        message="Remote error: 400 Bad Request", status=400, url=url
    )
