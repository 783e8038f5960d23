import logging
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

import requests
import urllib3
from requests.structures import CaseInsensitiveDict
from starlette.concurrency import iterate_in_threadpool, run_in_threadpool

from chameleon_proxy.constants import HOP_BY_HOP_HEADERS
from chameleon_proxy.errors import UpstreamError
from .sinks import ResponseSink

logger = logging.getLogger(__name__)

_STREAM_CHUNK_SIZE = 64 * 1024


@dataclass
class UpstreamRequest:
    method: str
    path: str
    query: str
    headers: CaseInsensitiveDict
    body: bytes


def _connection_tokens(connection_header: str | None) -> set[str]:
    # headers named in Connection are hop-by-hop for this connection only
    if not connection_header:
        return set()
    return {token.strip().lower() for token in connection_header.split(",") if token.strip()}


def _single_joining_slash(a: str, b: str) -> str:
    a_slash = a.endswith("/")
    b_slash = b.startswith("/")
    if a_slash and b_slash:
        return a + b[1:]
    if not a_slash and not b_slash:
        return a + "/" + b
    return a + b


def build_forward_headers(
    request_headers: list[tuple[str, str]], client_host: str | None
) -> CaseInsensitiveDict:
    """
    Copy the client's request headers for sending to the backend.

    Hop-by-hop headers, Host and Content-Length are dropped (the HTTP client sets
    them for the upstream connection) and the client address is appended to
    X-Forwarded-For.
    """
    connection = next((v for k, v in request_headers if k.lower() == "connection"), None)
    excluded = set(HOP_BY_HOP_HEADERS) | _connection_tokens(connection) | {"host", "content-length"}

    headers = CaseInsensitiveDict()
    for name, value in request_headers:
        if name.lower() in excluded:
            continue
        if name in headers:
            # repeated request headers are folded into one comma-separated value
            headers[name] = headers[name] + ", " + value
        else:
            headers[name] = value

    if client_host:
        prior = headers.get("X-Forwarded-For")
        headers["X-Forwarded-For"] = f"{prior}, {client_host}" if prior else client_host
    return headers


class RequestForwarder:
    """Sends requests to the single backend origin and relays the answer into a sink"""

    def __init__(self, backend_url: str, timeout: float = 30):
        self._backend_url = backend_url
        self._backend = urlsplit(backend_url)
        self._timeout = timeout
        self._session = requests.Session()
        # only send what the client sent; requests defaults (e.g. Accept-Encoding) would alter the response
        self._session.headers.clear()

    @property
    def backend_url(self) -> str:
        return self._backend_url

    def get_upstream_url(self, path: str, query: str) -> str:
        upstream_path = _single_joining_slash(self._backend.path, path)
        upstream_query = "&".join(q for q in [self._backend.query, query] if q)
        return urlunsplit((self._backend.scheme, self._backend.netloc, upstream_path, upstream_query, ""))

    async def forward(self, upstream_request: UpstreamRequest, sink: ResponseSink):
        """
        Send the request to the backend and stream its response into sink.

        Raises UpstreamError if the backend can't be reached or fails part way
        through the body (check sink.status_committed to tell the two apart).
        """
        url = self.get_upstream_url(upstream_request.path, upstream_request.query)
        try:
            response = await run_in_threadpool(
                self._session.request,
                upstream_request.method,
                url,
                headers=upstream_request.headers,
                data=upstream_request.body or None,
                stream=True,
                allow_redirects=False,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise UpstreamError(f"failed to reach backend {self._backend_url}: {e}") from e

        try:
            raw_headers = response.raw.headers
            excluded = set(HOP_BY_HOP_HEADERS) | _connection_tokens(raw_headers.get("Connection"))
            for name in raw_headers:
                if name.lower() in excluded:
                    continue
                for value in raw_headers.getlist(name):
                    sink.set_header(name, value)

            await sink.write_status(response.status_code)

            try:
                # relay raw bytes so compressed bodies reach the client (and the recording) untouched
                async for chunk in iterate_in_threadpool(
                    response.raw.stream(_STREAM_CHUNK_SIZE, decode_content=False)
                ):
                    await sink.write(chunk)
            except (requests.RequestException, urllib3.exceptions.HTTPError, OSError) as e:
                raise UpstreamError(f"backend {self._backend_url} failed while sending the response body: {e}") from e
        finally:
            response.close()

    def close(self):
        self._session.close()
