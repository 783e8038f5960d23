import logging
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

import fastapi
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool
from starlette.types import Receive, Scope, Send

from chameleon_proxy.constants import BODYLESS_STATUS_CODES, FINGERPRINT_LOG_LENGTH, HOP_BY_HOP_HEADERS
from chameleon_proxy.errors import CorruptRecordError, RecordNotFoundError, StorageWriteError, UpstreamError
from chameleon_proxy.metrics import proxy_metrics
from chameleon_proxy.models import Config, ProxyMode, RequestContext
from .conditional_headers import strip_conditional_headers
from .fingerprint import fingerprint
from .forwarder import RequestForwarder, UpstreamRequest, build_forward_headers
from .models import ResponseRecord
from .persistence import RecordingStore
from .sinks import CapturingResponseSink, ClientResponseSink

logger = logging.getLogger(__name__)


def status_allows_body(status_code: int) -> bool:
    # 1xx, 204 (No Content) and 304 (Not Modified) must not include a body
    return not (100 <= status_code < 200 or status_code in BODYLESS_STATUS_CODES)


def _record_duration(mode: ProxyMode, status_code: int, start_time: float):
    proxy_metrics.histogram_request_duration.record(
        time.perf_counter() - start_time,
        attributes={"mode": mode.value, "status_code": status_code},
    )


def get_request_fingerprint(context: RequestContext) -> str:
    request = context.request
    request_fingerprint = fingerprint(request.method, request.url.path, context.body)
    logger.info(
        "[%s] %s %s | Hash: %s | Mode: %s",
        request.method,
        request.url.path,
        request.client.host if request.client else "-",
        request_fingerprint[:FINGERPRINT_LOG_LENGTH],
        context.config.mode.value,
    )
    return request_fingerprint


def _get_upstream_request(context: RequestContext) -> UpstreamRequest:
    request = context.request
    return UpstreamRequest(
        method=request.method,
        path=context.raw_path,
        query=context.query,
        headers=build_forward_headers(request.headers.items(), request.client.host if request.client else None),
        body=context.body,
    )


class ForwardingResponse(fastapi.Response):
    """
    Response that streams the backend's answer to the client as it arrives.

    When on_captured is given, the answer is also captured and handed over once
    it has been fully relayed.
    """

    def __init__(
        self,
        forwarder: RequestForwarder,
        upstream_request: UpstreamRequest,
        mode: ProxyMode,
        start_time: float,
        on_captured: Callable[[CapturingResponseSink], Awaitable[None]] | None = None,
    ):
        super().__init__(status_code=200)
        self._forwarder = forwarder
        self._upstream_request = upstream_request
        self._mode = mode
        self._start_time = start_time
        self._on_captured = on_captured

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        client_sink = ClientResponseSink(send)
        sink = CapturingResponseSink(client_sink) if self._on_captured else client_sink
        label = self._mode.value.upper()

        try:
            await self._forwarder.forward(self._upstream_request, sink)
        except UpstreamError as e:
            if client_sink.status_committed:
                # too late to report an error status, drop the connection instead
                logger.error("[%s] %s", label, e)
                raise
            logger.error("[%s] Bad gateway: %s", label, e)
            self.status_code = 502
            client_sink.set_header("Content-Type", "text/plain; charset=utf-8")
            await client_sink.write_status(self.status_code)
            await client_sink.write(f"bad gateway: {e}".encode("utf-8"))
            await client_sink.close()
            _record_duration(self._mode, self.status_code, self._start_time)
            return

        await sink.close()
        self.status_code = client_sink.status_code

        if self._on_captured:
            await self._on_captured(sink)

        logger.info("[%s] Completed in %.3fs", label, time.perf_counter() - self._start_time)
        _record_duration(self._mode, self.status_code, self._start_time)

        if self.background is not None:
            await self.background()


class ModeHandler(ABC):
    mode: ProxyMode

    @abstractmethod
    async def handle(self, context: RequestContext) -> fastapi.Response: ...


class PassthroughHandler(ModeHandler):
    mode = ProxyMode.PASSTHROUGH

    def __init__(self, forwarder: RequestForwarder):
        self._forwarder = forwarder

    async def handle(self, context: RequestContext) -> fastapi.Response:
        logger.info("[PASSTHROUGH] Proxying to backend: %s", self._forwarder.backend_url)
        return ForwardingResponse(
            self._forwarder,
            _get_upstream_request(context),
            mode=self.mode,
            start_time=time.perf_counter(),
        )


class RecordHandler(ModeHandler):
    mode = ProxyMode.RECORD

    def __init__(self, store: RecordingStore, forwarder: RequestForwarder):
        self._store = store
        self._forwarder = forwarder

    async def handle(self, context: RequestContext) -> fastapi.Response:
        start_time = time.perf_counter()
        request = context.request
        request_fingerprint = get_request_fingerprint(context)

        upstream_request = _get_upstream_request(context)
        if strip_conditional_headers(upstream_request.headers):
            logger.info("[RECORD] Stripped conditional headers to force full response")

        logger.info("[RECORD] Proxying to backend: %s", self._forwarder.backend_url)

        method = request.method
        path = request.url.path

        async def store_captured_response(capture: CapturingResponseSink):
            await self.store_recorded_response(request_fingerprint, capture.to_record(method, path))

        return ForwardingResponse(
            self._forwarder,
            upstream_request,
            mode=self.mode,
            start_time=start_time,
            on_captured=store_captured_response,
        )

    async def store_recorded_response(self, request_fingerprint: str, record: ResponseRecord):
        try:
            await run_in_threadpool(self._store.save, request_fingerprint, record)
        except StorageWriteError as e:
            # the client already has its response, a failed save only loses the recording
            logger.error("[ERROR] Failed to save cached response: %s", e)
            proxy_metrics.counter_recordings_saved.add(1, attributes={"result": "failed"})
            return

        proxy_metrics.counter_recordings_saved.add(1, attributes={"result": "ok"})
        logger.info(
            "📝 [RECORD] Saved response: %s %s | Status: %d | Hash: %s",
            record.method,
            record.path,
            record.status_code,
            request_fingerprint[:FINGERPRINT_LOG_LENGTH],
        )


class ReplayHandler(ModeHandler):
    mode = ProxyMode.REPLAY

    def __init__(self, store: RecordingStore):
        self._store = store

    async def handle(self, context: RequestContext) -> fastapi.Response:
        start_time = time.perf_counter()
        request_fingerprint = get_request_fingerprint(context)

        response = await self._get_replay_response(request_fingerprint)

        logger.info("[REPLAY] Completed in %.3fs", time.perf_counter() - start_time)
        _record_duration(self.mode, response.status_code, start_time)
        return response

    async def _get_replay_response(self, request_fingerprint: str) -> fastapi.Response:
        if not self._store.exists(request_fingerprint):
            return self._not_found(request_fingerprint)

        try:
            record = await run_in_threadpool(self._store.load, request_fingerprint)
        except RecordNotFoundError:
            # removed between the existence check and the read
            return self._not_found(request_fingerprint)
        except CorruptRecordError as e:
            logger.error("[REPLAY] Failed to load cached response: %s", e)
            proxy_metrics.counter_replay_lookups.add(1, attributes={"result": "corrupt"})
            return PlainTextResponse(f"failed to load cached response: {e}", status_code=500)

        proxy_metrics.counter_replay_lookups.add(1, attributes={"result": "hit"})
        logger.info(
            "[REPLAY] Serving cached response: %s %s | Status: %d | Hash: %s",
            record.method,
            record.path,
            record.status_code,
            request_fingerprint[:FINGERPRINT_LOG_LENGTH],
        )
        return build_replay_response(record)

    def _not_found(self, request_fingerprint: str) -> fastapi.Response:
        logger.info("[REPLAY] No cached response found for hash: %s", request_fingerprint)
        proxy_metrics.counter_replay_lookups.add(1, attributes={"result": "miss"})
        return PlainTextResponse(
            f"no cached response found for request (hash: {request_fingerprint})", status_code=404
        )


def build_replay_response(record: ResponseRecord) -> fastapi.Response:
    """
    Rebuild the client response from a recording.

    Content-Length is left for Starlette to compute from the body actually sent,
    and the body is dropped for statuses that can't carry one. A HEAD recording
    has no body, so its recorded Content-Length is replayed as the backend sent it.
    """
    body = record.body if status_allows_body(record.status_code) else b""
    response = fastapi.Response(content=body, status_code=record.status_code)
    keep_content_length = record.method == "HEAD" and status_allows_body(record.status_code)

    for name, values in record.headers.items():
        lower_name = name.lower()
        if lower_name in HOP_BY_HOP_HEADERS or not values:
            continue
        if lower_name == "content-length" and not keep_content_length:
            continue
        response.headers[name] = values[0]
        for value in values[1:]:
            response.headers.append(name, value)
    return response


def create_handler(config: Config, store: RecordingStore, forwarder: RequestForwarder) -> ModeHandler:
    if config.mode == ProxyMode.RECORD:
        return RecordHandler(store, forwarder)
    if config.mode == ProxyMode.REPLAY:
        return ReplayHandler(store)
    if config.mode == ProxyMode.PASSTHROUGH:
        return PassthroughHandler(forwarder)
    raise ValueError(f"unknown mode: {config.mode}")
