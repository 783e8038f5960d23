from collections.abc import MutableMapping

from chameleon_proxy.constants import CONDITIONAL_REQUEST_HEADERS, REVALIDATION_DIRECTIVES


def _requests_revalidation(value: str) -> bool:
    directives = [d.strip().lower().replace(" ", "") for d in value.split(",")]
    return any(d in REVALIDATION_DIRECTIVES for d in directives)


def strip_conditional_headers(headers: MutableMapping[str, str]) -> bool:
    """
    Remove request headers that would let the backend answer with a validation
    response (e.g. 304 Not Modified) instead of the full resource.

    headers must be a case-insensitive mapping. Returns True if anything was removed.
    """
    stripped = False
    for header in CONDITIONAL_REQUEST_HEADERS:
        if header in headers:
            del headers[header]
            stripped = True

    for header in ["Cache-Control", "Pragma"]:
        value = headers.get(header)
        if value is not None and _requests_revalidation(value):
            del headers[header]
            stripped = True

    return stripped
