# imports here allow aggregating types under chameleon_proxy.record_replay
# pylint: disable=useless-import-alias
from .fingerprint import fingerprint as fingerprint
from .handler import create_handler as create_handler
from .models import ResponseRecord as ResponseRecord
from .persistence import (
    JsonRecordingStore as JsonRecordingStore,
    RecordingStore as RecordingStore,
    YamlRecordingStore as YamlRecordingStore,
    create_recording_store as create_recording_store,
)
