import logging
import traceback

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.requests import ClientDisconnect

from chameleon_proxy.config_loader import get_config
from chameleon_proxy.errors import HashFailureError
from chameleon_proxy.models import RequestContext
from chameleon_proxy.record_replay.forwarder import RequestForwarder
from chameleon_proxy.record_replay.handler import ModeHandler, create_handler
from chameleon_proxy.record_replay.persistence import create_recording_store

logger = logging.getLogger(__name__)

# every path belongs to the backend, so FastAPI's own documentation routes are disabled
app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

PROXIED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# pylint: disable-next=invalid-name
proxy_handler: ModeHandler | None = None
# pylint: disable-next=invalid-name
forwarder: RequestForwarder | None = None


def initialize():
    """
    Build the request handler for the configured mode.

    The mode is fixed for the lifetime of the handler; call again after set_config to apply a new config.
    """
    # pylint: disable-next=global-statement
    global proxy_handler, forwarder

    config = get_config()
    if forwarder:
        forwarder.close()

    logger.info("🚀 Starting chameleon-proxy in %s mode", config.mode.value)
    logger.info("🔗 Backend URL              : %s", config.backend_url)
    logger.info("📼 Storage path             : %s", config.storage_path)
    logger.info("📼 Recording format         : %s", config.recording_format)

    store = create_recording_store(config.recording_format, config.storage_path)
    store.ensure_recording_dir_exists()
    forwarder = RequestForwarder(config.backend_url, timeout=config.backend_timeout)
    proxy_handler = create_handler(config, store, forwarder)


@app.api_route("/{full_path:path}", methods=PROXIED_METHODS)
async def catchall(request: Request):
    logger.debug("⚡ handling route: %s", request.url.path)

    try:
        # the body is buffered once and shared by fingerprinting and forwarding
        body = await request.body()
    except ClientDisconnect as e:
        logger.error("[ERROR] Failed to read request body: %s", e)
        return PlainTextResponse(f"failed to read request body: {e}", status_code=500)

    context = RequestContext(config=get_config(), request=request, body=body)

    try:
        if not proxy_handler:
            raise ValueError("Proxy handler not initialized")
        response: Response = await proxy_handler.handle(context)
        return response
    except HashFailureError as e:
        logger.error("[ERROR] Failed to generate hash: %s", e)
        return PlainTextResponse(f"failed to generate hash: {e}", status_code=500)
    # pylint: disable-next=broad-exception-caught
    except Exception as e:
        logger.error("Error: %s\n%s", e, traceback.format_exc())
        return PlainTextResponse(f"internal error: {e}", status_code=500)
