"""Mock client for testing handler chains without network calls."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING

from courier.client import RequestFactoryMixin
from courier.response import HttpResponse, ResponseCode

if TYPE_CHECKING:
    from courier.request import HttpRequest

log = logging.getLogger(__name__)


@dataclass
class MockClient(RequestFactoryMixin):
    """``HttpClient`` that replays a script of responses or exceptions.

    Each ``send`` pops the next scripted item: an ``HttpResponse`` is
    returned, an exception is raised. Once the script is exhausted every call
    returns ``default``. Sent requests are recorded in ``requests``.

    Example:
        client = MockClient([HttpResponse(ResponseCode.NO_CONTENT)])
        deleted = client.delete("https://example.com/items/1")
        outcome = await deleted.expect_no_content(True)
    """

    script: list[HttpResponse | BaseException] = field(default_factory=list)
    default: HttpResponse = field(
        default_factory=lambda: HttpResponse(ResponseCode.OK)
    )
    requests: list[HttpRequest] = field(default_factory=list)

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def send(self, request: HttpRequest) -> HttpResponse:
        """Return (or raise) the next scripted item."""
        self.requests.append(request)
        if not self.script:
            return self.default
        item = self.script.pop(0)
        log.debug("Mock %s %s -> %r", request.method, request.url, item)
        if isinstance(item, BaseException):
            raise item
        return item
