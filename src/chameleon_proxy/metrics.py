from dataclasses import dataclass
from opentelemetry import metrics


@dataclass
class ProxyMetrics:
    histogram_request_duration: metrics.Histogram
    counter_replay_lookups: metrics.Counter
    counter_recordings_saved: metrics.Counter


def _get_proxy_metrics() -> ProxyMetrics:
    meter = metrics.get_meter(__name__)
    return ProxyMetrics(
        # dimensions: mode, status_code
        histogram_request_duration=meter.create_histogram(
            name="chameleon.request.duration",
            description="Duration of handling a request, including any time spent waiting on the backend",
            unit="seconds",
        ),
        # dimensions: result (hit, miss, corrupt)
        counter_replay_lookups=meter.create_counter(
            name="chameleon.replay.lookups",
            description="Number of recording lookups made in replay mode",
            unit="requests",
        ),
        # dimensions: result (ok, failed)
        counter_recordings_saved=meter.create_counter(
            name="chameleon.recordings.saved",
            description="Number of responses persisted in record mode",
            unit="recordings",
        ),
    )


proxy_metrics = _get_proxy_metrics()
