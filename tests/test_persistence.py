import json
import os

import pytest

from chameleon_proxy.errors import CorruptRecordError, RecordNotFoundError, StorageWriteError
from chameleon_proxy.record_replay.fingerprint import fingerprint
from chameleon_proxy.record_replay.models import ResponseRecord
from chameleon_proxy.record_replay.persistence import (
    JsonRecordingStore,
    YamlRecordingStore,
    create_recording_store,
)

FINGERPRINT = fingerprint("GET", "/api/users", b"")


def _record(body: bytes, status_code: int = 200, headers: dict | None = None) -> ResponseRecord:
    return ResponseRecord(
        method="GET",
        path="/api/users",
        status_code=status_code,
        headers=headers if headers is not None else {"Content-Type": ["application/json"]},
        body=body,
    )


@pytest.fixture(params=[JsonRecordingStore, YamlRecordingStore], ids=["json", "yaml"])
def store(request, tmp_path):
    return request.param(str(tmp_path / "recordings"))


def test_json_body_is_stored_as_structured_value(tmp_path):
    store = JsonRecordingStore(str(tmp_path))
    store.save(FINGERPRINT, _record(b'{"name":"John","tags":["a","b"]}'))

    with open(tmp_path / f"{FINGERPRINT}.json", encoding="utf-8") as f:
        text = f.read()
    envelope = json.loads(text)
    assert envelope["body"] == {"name": "John", "tags": ["a", "b"]}
    assert envelope["status_code"] == 200
    assert envelope["headers"] == {"Content-Type": ["application/json"]}
    # pretty printed for humans
    assert "\n  " in text


def test_binary_body_is_stored_as_base64(tmp_path):
    store = JsonRecordingStore(str(tmp_path))
    store.save(FINGERPRINT, _record(b"\x00\x01\x02\xff", headers={}))

    with open(tmp_path / f"{FINGERPRINT}.json", encoding="utf-8") as f:
        envelope = json.load(f)
    assert envelope["body"] == "AAEC/w=="


def test_json_body_round_trip(store):
    store.save(FINGERPRINT, _record(b'{"name": "John", "age": 42, "nested": {"ok": true}}'))

    loaded = store.load(FINGERPRINT)
    assert json.loads(loaded.body) == {"name": "John", "age": 42, "nested": {"ok": True}}
    assert loaded.method == "GET"
    assert loaded.path == "/api/users"
    assert loaded.status_code == 200


@pytest.mark.parametrize(
    "body",
    [
        b"\x00\x00null bytes\x00",
        b"\xff\xfe\xfd not utf-8",
        b"<html><body>plain html</body></html>",
        b'"a bare json string"',
        b"NaN",
        b"",
        b'{"x":1e400}',
        b'{"a":"\\ud800"}',
    ],
    ids=["nulls", "non-utf8", "html", "json-string", "nan", "empty", "float-overflow", "lone-surrogate"],
)
def test_opaque_body_round_trip_is_exact(store, body: bytes):
    store.save(FINGERPRINT, _record(body, headers={}))
    assert store.load(FINGERPRINT).body == body


def test_multi_value_headers_keep_order(store):
    headers = {"Set-Cookie": ["c=3", "a=1", "b=2"], "Vary": ["Accept", "Origin"]}
    store.save(FINGERPRINT, _record(b"", headers=headers))
    assert store.load(FINGERPRINT).headers == headers


def test_missing_recording(store):
    assert not store.exists(FINGERPRINT)
    with pytest.raises(RecordNotFoundError):
        store.load(FINGERPRINT)


def test_save_creates_directory_and_overwrites(store):
    assert not os.path.exists(store.recording_dir)

    store.save(FINGERPRINT, _record(b"first", headers={}))
    store.save(FINGERPRINT, _record(b"second", status_code=201, headers={}))

    assert store.exists(FINGERPRINT)
    loaded = store.load(FINGERPRINT)
    assert loaded.body == b"second"
    assert loaded.status_code == 201
    assert store.list_fingerprints() == [FINGERPRINT]


def test_save_failure_raises_storage_write_error(store):
    store.ensure_recording_dir_exists()
    os.mkdir(store.get_recording_file_path(FINGERPRINT))

    with pytest.raises(StorageWriteError) as exc_info:
        store.save(FINGERPRINT, _record(b"body", headers={}))

    assert exc_info.value.fingerprint == FINGERPRINT
    # no temp files are left behind
    assert os.listdir(store.recording_dir) == [FINGERPRINT + store.extension]


def test_hand_edited_plain_text_body_is_used_literally(tmp_path):
    with open(tmp_path / f"{FINGERPRINT}.json", "w", encoding="utf-8") as f:
        json.dump(
            {"method": "GET", "path": "/api/users", "status_code": 200, "headers": {}, "body": "hello world!"}, f
        )

    assert JsonRecordingStore(str(tmp_path)).load(FINGERPRINT).body == b"hello world!"


@pytest.mark.parametrize(
    "content",
    [
        "{ not json",
        "[1, 2, 3]",
        '{"method": "GET", "path": "/api/users", "status_code": 200, "headers": {}}',
        '{"method": "GET", "path": "/api/users", "status_code": "200", "headers": {}, "body": ""}',
        '{"method": "GET", "path": "/api/users", "status_code": 200, "headers": {"X": "single"}, "body": ""}',
    ],
    ids=["invalid-json", "not-a-mapping", "missing-body", "string-status", "header-not-list"],
)
def test_corrupt_recording(tmp_path, content: str):
    with open(tmp_path / f"{FINGERPRINT}.json", "w", encoding="utf-8") as f:
        f.write(content)

    store = JsonRecordingStore(str(tmp_path))
    assert store.exists(FINGERPRINT)
    with pytest.raises(CorruptRecordError):
        store.load(FINGERPRINT)


def test_corrupt_yaml_recording(tmp_path):
    with open(tmp_path / f"{FINGERPRINT}.yaml", "w", encoding="utf-8") as f:
        f.write("method: [unclosed\n")

    with pytest.raises(CorruptRecordError):
        YamlRecordingStore(str(tmp_path)).load(FINGERPRINT)


def test_list_fingerprints_ignores_other_files(tmp_path):
    store = JsonRecordingStore(str(tmp_path))
    store.save(FINGERPRINT, _record(b"", headers={}))
    (tmp_path / "notes.txt").write_text("not a recording")
    (tmp_path / ".abc.tmp").write_text("partial")

    assert store.list_fingerprints() == [FINGERPRINT]


def test_create_recording_store(tmp_path):
    assert isinstance(create_recording_store("json", str(tmp_path)), JsonRecordingStore)
    assert isinstance(create_recording_store("yaml", str(tmp_path)), YamlRecordingStore)
    with pytest.raises(ValueError):
        create_recording_store("xml", str(tmp_path))


def test_unencodable_recording_raises_storage_write_error(tmp_path):
    store = JsonRecordingStore(str(tmp_path))

    with pytest.raises(StorageWriteError) as exc_info:
        store.save(FINGERPRINT, _record(b"", headers={"X-Broken": ["\ud800"]}))

    assert exc_info.value.fingerprint == FINGERPRINT
    assert os.listdir(tmp_path) == []
