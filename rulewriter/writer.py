"""Writes recording rule results to a Prometheus remote-write endpoint."""
import logging
import time
from datetime import datetime
from typing import List, Mapping, Optional, Sequence

from rulewriter.config import WriterConfig, validate_settings
from rulewriter.errors import RemoteWriteError, TransportError, WriteError
from rulewriter.frames import Frame
from rulewriter.remote_client import (
    BasicAuthOptions,
    ClientConfig,
    Datapoint,
    HTTPClientProvider,
    RemoteWriteClient,
    TimeSeries,
    TransportOptions,
    TSLabel,
    WriteOptions,
)
from rulewriter.self_metrics import (
    OUTCOME_DUPLICATE,
    OUTCOME_ERROR,
    OUTCOME_SUCCESS,
    WriterMetrics,
)
from rulewriter.series import NAME_LABEL, Point, points_from_frames

logger = logging.getLogger(__name__)

USER_AGENT = "rulewriter-recording-rule"

# Fixed error messages
MIMIR_DUPLICATE_TIMESTAMP_ERROR = "err-mimir-sample-duplicate-timestamp"

# Best effort error messages
PROMETHEUS_DUPLICATE_TIMESTAMP_ERROR = "duplicate sample for timestamp"

# A 400 response whose body contains one of these means the store already
# holds a sample for the same series and timestamp.
DUPLICATE_TIMESTAMP_ERRORS = (
    MIMIR_DUPLICATE_TIMESTAMP_ERROR,
    PROMETHEUS_DUPLICATE_TIMESTAMP_ERROR,
)


def create_auth_opts(username: str, password: str) -> Optional[BasicAuthOptions]:
    # If username is empty, do not use basic auth and ignore password.
    if not username:
        return None
    return BasicAuthOptions(user=username, password=password)


def labels_from_point(point: Point) -> List[TSLabel]:
    """Wire labels for a point: ``__name__`` first, then the point's labels."""
    labels = [TSLabel(name=NAME_LABEL, value=point.name)]
    for k, v in point.labels.items():
        labels.append(TSLabel(name=k, value=v))
    return labels


def is_duplicate_timestamp_error(
    err: WriteError, signatures: Sequence[str] = DUPLICATE_TIMESTAMP_ERRORS
) -> bool:
    if err.status_code != 400:
        return False
    msg = str(err)
    return any(sig in msg for sig in signatures)


def check_write_error(
    err: Optional[WriteError], signatures: Sequence[str] = DUPLICATE_TIMESTAMP_ERRORS
) -> Optional[WriteError]:
    """Return ``err`` unless it is absent or a tolerated duplicate-timestamp rejection."""
    if err is None:
        return None
    if is_duplicate_timestamp_error(err, signatures):
        return None
    return err


class PrometheusWriter:
    """Turns rule evaluation frames into remote-write calls.

    Built once from validated settings and safe to share between threads:
    nothing is mutated after construction.
    """

    def __init__(
        self,
        settings: WriterConfig,
        http_client_provider: HTTPClientProvider,
        log: Optional[logging.Logger] = None,
        metrics: Optional[WriterMetrics] = None,
        duplicate_signatures: Sequence[str] = DUPLICATE_TIMESTAMP_ERRORS,
    ):
        validate_settings(settings)

        options = TransportOptions(
            basic_auth=create_auth_opts(settings.basic_auth_username, settings.basic_auth_password),
            headers=dict(settings.custom_headers),
        )
        try:
            session = http_client_provider.get_transport(options)
        except Exception as e:
            raise TransportError(f"failed to create HTTP transport: {e}") from e

        try:
            self.client = RemoteWriteClient(ClientConfig(
                write_url=settings.url,
                http_client_timeout=settings.timeout,
                user_agent=USER_AGENT,
                http_client=session,
            ))
        except ValueError as e:
            raise TransportError(f"failed to create remote write client: {e}") from e

        self.logger = log or logger
        self.metrics = metrics
        self.duplicate_signatures = tuple(duplicate_signatures)

    def write(
        self,
        name: str,
        t: datetime,
        frames: Sequence[Frame],
        extra_labels: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Write the given frames to the remote write endpoint.

        Raises ExtractionError for frames that are not a numeric collection
        and RemoteWriteError for any failure other than a duplicate sample.
        """
        points = points_from_frames(name, t, frames, extra_labels)

        series = [
            TimeSeries(
                labels=labels_from_point(p),
                datapoint=Datapoint(timestamp=p.metric.t, value=p.metric.v),
            )
            for p in points
        ]

        self.logger.debug(f"Writing metric name={name}")
        start = time.monotonic()
        write_err = None
        try:
            self.client.write_time_series(series, WriteOptions(), timeout=timeout)
        except WriteError as e:
            write_err = e

        err = check_write_error(write_err, self.duplicate_signatures)
        if err is not None:
            self._record(OUTCOME_ERROR, len(series), start)
            raise RemoteWriteError(f"failed to write time series: {err}", cause=err) from err

        if write_err is not None:
            self.logger.debug(f"Ignoring duplicate sample error for metric name={name}: {write_err}")
            self._record(OUTCOME_DUPLICATE, len(series), start)
        else:
            self._record(OUTCOME_SUCCESS, len(series), start)

    def _record(self, outcome: str, points: int, start: float):
        if self.metrics is not None:
            self.metrics.record_write(outcome, points, time.monotonic() - start)


def new_prometheus_writer(
    settings: WriterConfig,
    http_client_provider: HTTPClientProvider,
    log: Optional[logging.Logger] = None,
    metrics: Optional[WriterMetrics] = None,
    duplicate_signatures: Sequence[str] = DUPLICATE_TIMESTAMP_ERRORS,
) -> PrometheusWriter:
    return PrometheusWriter(settings, http_client_provider, log, metrics, duplicate_signatures)
