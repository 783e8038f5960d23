import copy
import logging
from typing import Protocol

from starlette.types import Send

from .models import ResponseRecord

logger = logging.getLogger(__name__)


class ResponseSink(Protocol):
    """
    Destination for a response as it is produced.

    Headers must be set before the status is written; the status is committed
    at most once, and body chunks follow it.
    """

    @property
    def status_committed(self) -> bool: ...

    @property
    def status_code(self) -> int: ...

    def set_header(self, name: str, value: str): ...

    async def write_status(self, status_code: int): ...

    async def write(self, chunk: bytes): ...

    async def close(self): ...


class ClientResponseSink:
    """Writes a response straight to the ASGI connection of the calling client"""

    def __init__(self, send: Send):
        self._send = send
        self._headers: list[tuple[str, str]] = []
        self._status_code = 200
        self._status_committed = False
        self._closed = False

    @property
    def status_committed(self) -> bool:
        return self._status_committed

    @property
    def status_code(self) -> int:
        return self._status_code

    def set_header(self, name: str, value: str):
        if self._status_committed:
            logger.debug("Ignoring header %s set after the status was written", name)
            return
        self._headers.append((name, value))

    async def write_status(self, status_code: int):
        if self._status_committed:
            logger.warning("Status %s written after the response started, ignoring", status_code)
            return
        self._status_code = status_code
        self._status_committed = True
        await self._send(
            {
                "type": "http.response.start",
                "status": status_code,
                "headers": [(name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in self._headers],
            }
        )

    async def write(self, chunk: bytes):
        if not self._status_committed:
            await self.write_status(200)
        if chunk:
            await self._send({"type": "http.response.body", "body": chunk, "more_body": True})

    async def close(self):
        if self._closed:
            return
        if not self._status_committed:
            await self.write_status(200)
        self._closed = True
        await self._send({"type": "http.response.body", "body": b"", "more_body": False})


class CapturingResponseSink:
    """
    Relays a response to another sink while keeping a copy of it.

    The captured headers are the ones set when the status was written; anything
    set later never shows up in the recording.
    """

    def __init__(self, inner: ResponseSink):
        self._inner = inner
        self._pending_headers: dict[str, list[str]] = {}
        self._headers: dict[str, list[str]] = {}
        self._status_code: int | None = None
        self._body = bytearray()

    @property
    def status_committed(self) -> bool:
        return self._inner.status_committed

    @property
    def status_code(self) -> int:
        return self._status_code if self._status_code is not None else 200

    @property
    def headers(self) -> dict[str, list[str]]:
        return self._headers

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    def set_header(self, name: str, value: str):
        self._pending_headers.setdefault(name, []).append(value)
        self._inner.set_header(name, value)

    async def write_status(self, status_code: int):
        if self._status_code is None:
            self._headers = copy.deepcopy(self._pending_headers)
            self._status_code = status_code
        await self._inner.write_status(status_code)

    async def write(self, chunk: bytes):
        if self._status_code is None:
            # the inner sink commits an implicit 200 on first write
            self._headers = copy.deepcopy(self._pending_headers)
            self._status_code = 200
        self._body.extend(chunk)
        await self._inner.write(chunk)

    async def close(self):
        await self._inner.close()

    def to_record(self, method: str, path: str) -> ResponseRecord:
        return ResponseRecord(
            method=method,
            path=path,
            status_code=self.status_code,
            headers=copy.deepcopy(self._headers),
            body=self.body,
        )
