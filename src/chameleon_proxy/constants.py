#################################################################################
# Header and status sets shared by the forwarder, the sinks and the replay handler.

# CONDITIONAL_REQUEST_HEADERS lets an origin answer with a body-less validation
# response (304/412) instead of the full resource
CONDITIONAL_REQUEST_HEADERS = [
    "If-None-Match",  # ETag-based conditional request
    "If-Modified-Since",  # date-based conditional request
    "If-Match",  # ETag match for PUT/PATCH
    "If-Unmodified-Since",  # date-based conditional for PUT/PATCH
    "If-Range",  # range request conditional
]

# REVALIDATION_DIRECTIVES are Cache-Control/Pragma directives that ask the origin to revalidate
REVALIDATION_DIRECTIVES = ["no-cache", "max-age=0"]

# HOP_BY_HOP_HEADERS apply to a single connection and are never forwarded or replayed
HOP_BY_HOP_HEADERS = [
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
]

# BODYLESS_STATUS_CODES must not carry a response body (1xx are handled by range check)
BODYLESS_STATUS_CODES = [204, 304]

# FINGERPRINT_LOG_LENGTH is the number of fingerprint characters shown in log lines
FINGERPRINT_LOG_LENGTH = 16
