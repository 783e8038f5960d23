import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from typing import Any

import yaml

from chameleon_proxy.errors import CorruptRecordError, RecordNotFoundError, StorageWriteError
from .models import ResponseRecord, body_from_envelope, body_to_envelope, encode_body

try:
    from yaml import CSafeDumper as _YamlDumper, CSafeLoader as _YamlLoader
except ImportError:
    from yaml import SafeDumper as _YamlDumper, SafeLoader as _YamlLoader

logger = logging.getLogger(__name__)


class RecordingStore(ABC):
    """
    Content-addressable store of recorded responses.

    Each recording lives in its own file named after the request fingerprint.
    Subclasses only decide how the envelope is serialized.
    """

    extension: str

    def __init__(self, recording_dir: str):
        self._recording_dir = recording_dir

    @property
    def recording_dir(self) -> str:
        return self._recording_dir

    @abstractmethod
    def _dumps(self, envelope: dict[str, Any]) -> str: ...

    @abstractmethod
    def _loads(self, text: str) -> Any: ...

    def get_recording_file_path(self, fingerprint: str) -> str:
        return os.path.join(self._recording_dir, fingerprint + self.extension)

    def ensure_recording_dir_exists(self):
        os.makedirs(self._recording_dir, exist_ok=True)

    def exists(self, fingerprint: str) -> bool:
        return os.path.isfile(self.get_recording_file_path(fingerprint))

    def list_fingerprints(self) -> list[str]:
        fingerprints = []
        for entry in sorted(os.listdir(self._recording_dir)):
            name, extension = os.path.splitext(entry)
            if extension == self.extension and os.path.isfile(os.path.join(self._recording_dir, entry)):
                fingerprints.append(name)
        return fingerprints

    def load(self, fingerprint: str) -> ResponseRecord:
        recording_path = self.get_recording_file_path(fingerprint)
        try:
            with open(recording_path, "r", encoding="utf-8") as f:
                text = f.read()
        except FileNotFoundError as e:
            raise RecordNotFoundError(fingerprint) from e
        except (OSError, UnicodeDecodeError) as e:
            raise CorruptRecordError(fingerprint, f"failed to read {recording_path}: {e}") from e

        try:
            envelope = self._loads(text)
        except (ValueError, yaml.YAMLError) as e:
            raise CorruptRecordError(fingerprint, str(e)) from e

        return _record_from_envelope(fingerprint, envelope)

    def save(self, fingerprint: str, record: ResponseRecord):
        envelope = {
            "method": record.method,
            "path": record.path,
            "status_code": record.status_code,
            "headers": record.headers,
            "body": body_to_envelope(encode_body(record.body)),
        }
        recording_path = self.get_recording_file_path(fingerprint)
        try:
            text = self._dumps(envelope)
            self.ensure_recording_dir_exists()
            # write to a sibling temp file and rename so readers never see a partial recording
            fd, temp_path = tempfile.mkstemp(dir=self._recording_dir, prefix=".", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                os.chmod(temp_path, 0o644)
                os.replace(temp_path, recording_path)
            except BaseException:
                os.unlink(temp_path)
                raise
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise StorageWriteError(fingerprint, str(e)) from e
        logger.debug("💾 Recording saved to %s", recording_path)


class JsonRecordingStore(RecordingStore):
    extension = ".json"

    def _dumps(self, envelope: dict[str, Any]) -> str:
        return json.dumps(envelope, indent=2, ensure_ascii=False, allow_nan=False)

    def _loads(self, text: str) -> Any:
        return json.loads(text)


class YamlRecordingStore(RecordingStore):
    extension = ".yaml"

    def _dumps(self, envelope: dict[str, Any]) -> str:
        return yaml.dump(envelope, Dumper=_YamlDumper, sort_keys=False, allow_unicode=True)

    def _loads(self, text: str) -> Any:
        return yaml.load(text, Loader=_YamlLoader)


_stores: dict[str, type[RecordingStore]] = {
    "json": JsonRecordingStore,
    "yaml": YamlRecordingStore,
}


def create_recording_store(recording_format: str, recording_dir: str) -> RecordingStore:
    store_type = _stores.get(recording_format)
    if not store_type:
        raise ValueError(f"Unsupported recording format: {recording_format}")
    return store_type(recording_dir)


def _record_from_envelope(fingerprint: str, envelope: Any) -> ResponseRecord:
    if not isinstance(envelope, dict):
        raise CorruptRecordError(fingerprint, "recording is not a mapping")

    missing = [k for k in ["method", "path", "status_code", "headers", "body"] if k not in envelope]
    if missing:
        raise CorruptRecordError(fingerprint, f"missing fields: {', '.join(missing)}")

    method = envelope["method"]
    path = envelope["path"]
    status_code = envelope["status_code"]
    headers = envelope["headers"]
    if not isinstance(method, str) or not isinstance(path, str):
        raise CorruptRecordError(fingerprint, "method and path must be strings")
    # bool is an int subclass
    if not isinstance(status_code, int) or isinstance(status_code, bool):
        raise CorruptRecordError(fingerprint, "status_code must be an integer")
    if headers is None:
        headers = {}
    if not isinstance(headers, dict) or not all(
        isinstance(name, str) and isinstance(values, list) and all(isinstance(v, str) for v in values)
        for name, values in headers.items()
    ):
        raise CorruptRecordError(fingerprint, "headers must map names to lists of strings")

    return ResponseRecord(
        method=method,
        path=path,
        status_code=status_code,
        headers={name: list(values) for name, values in headers.items()},
        body=body_from_envelope(envelope["body"]),
    )
