import hashlib
from typing import BinaryIO

from chameleon_proxy.errors import HashFailureError

_READ_CHUNK_SIZE = 64 * 1024


def fingerprint(method: str, path: str, body: bytes | BinaryIO | None) -> str:
    """
    Return the hex-encoded SHA-256 of method, path and body.

    The result is used both as the lookup key and as the recording file name.
    Headers never take part in the hash, and the query string only does if the
    caller includes it in path. The parts are joined as "method:path:body", so a
    colon moved between path and body yields the same digest.
    """
    hasher = hashlib.sha256()
    hasher.update(f"{method}:{path}:".encode("utf-8"))

    if body is None:
        pass
    elif isinstance(body, (bytes, bytearray, memoryview)):
        hasher.update(body)
    else:
        try:
            while chunk := body.read(_READ_CHUNK_SIZE):
                hasher.update(chunk)
        except OSError as e:
            raise HashFailureError(f"failed to read request body for hashing: {e}") from e

    return hasher.hexdigest()
