class ChameleonError(Exception):
    """Base class for errors raised while proxying, recording or replaying a request"""


class HashFailureError(ChameleonError):
    """The request body could not be read, so no fingerprint can be computed"""


class UpstreamError(ChameleonError):
    """The backend could not be reached or failed while sending its response"""


class RecordNotFoundError(ChameleonError):
    def __init__(self, fingerprint: str):
        super().__init__(f"no recording found for fingerprint {fingerprint}")
        self.fingerprint = fingerprint


class CorruptRecordError(ChameleonError):
    def __init__(self, fingerprint: str, reason: str):
        super().__init__(f"recording {fingerprint} could not be decoded: {reason}")
        self.fingerprint = fingerprint
        self.reason = reason


class StorageWriteError(ChameleonError):
    def __init__(self, fingerprint: str, reason: str):
        super().__init__(f"failed to write recording {fingerprint}: {reason}")
        self.fingerprint = fingerprint
        self.reason = reason
