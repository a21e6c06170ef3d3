"""Prometheus remote-write client over a requests transport."""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Protocol, Sequence

import requests
import snappy
from requests.auth import HTTPBasicAuth

from rulewriter import remote_pb
from rulewriter.errors import WriteError

logger = logging.getLogger(__name__)

REMOTE_WRITE_VERSION = "0.1.0"
DEFAULT_USER_AGENT = "rulewriter"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Error bodies are only kept for classification and messages.
MAX_BODY_BYTES = 64 * 1024


@dataclass(frozen=True)
class BasicAuthOptions:
    user: str
    password: str


@dataclass
class TransportOptions:
    """What a transport provider needs to build a transport."""
    basic_auth: Optional[BasicAuthOptions] = None
    headers: Dict[str, str] = field(default_factory=dict)


class HTTPClientProvider(Protocol):
    """Builds the HTTP transport used by the writer."""

    def get_transport(self, options: TransportOptions) -> requests.Session:
        ...


class DefaultHTTPClientProvider:
    """Provides plain ``requests`` sessions with auth and headers applied."""

    def get_transport(self, options: TransportOptions) -> requests.Session:
        session = requests.Session()
        if options.basic_auth is not None:
            session.auth = HTTPBasicAuth(options.basic_auth.user, options.basic_auth.password)
        session.headers.update(options.headers)
        return session


@dataclass(frozen=True)
class TSLabel:
    name: str
    value: str


@dataclass(frozen=True)
class Datapoint:
    timestamp: datetime
    value: float


@dataclass
class TimeSeries:
    """One series with a single datapoint, the unit sent per write."""
    labels: List[TSLabel]
    datapoint: Datapoint


@dataclass
class WriteOptions:
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class WriteResult:
    status_code: int


@dataclass
class ClientConfig:
    write_url: str
    http_client_timeout: float
    user_agent: str = DEFAULT_USER_AGENT
    http_client: Optional[requests.Session] = None

    def validate(self) -> None:
        if not self.write_url:
            raise ValueError("remote write URL is required")
        if self.http_client_timeout <= 0:
            raise ValueError("HTTP client timeout must be greater than 0")


def to_millis(t: datetime) -> int:
    """Milliseconds since the epoch. Naive datetimes are taken as UTC."""
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    return (t - _EPOCH) // timedelta(milliseconds=1)


def build_write_request(series: Sequence[TimeSeries]):
    req = remote_pb.WriteRequest()
    for s in series:
        ts = req.timeseries.add()
        for label in s.labels:
            ts.labels.add(name=label.name, value=label.value)
        ts.samples.add(value=s.datapoint.value, timestamp=to_millis(s.datapoint.timestamp))
    return req


class RemoteWriteClient:
    """Sends time series to a remote-write endpoint, one POST per call."""

    def __init__(self, config: ClientConfig):
        config.validate()
        self.config = config
        self.session = config.http_client if config.http_client is not None else requests.Session()

    def write_time_series(
        self,
        series: Sequence[TimeSeries],
        options: Optional[WriteOptions] = None,
        timeout: Optional[float] = None,
    ) -> WriteResult:
        """POST ``series`` as a snappy-compressed WriteRequest.

        Raises WriteError for a non-2xx response or a transport failure.
        ``timeout`` replaces the configured client timeout when it is
        shorter. Either way it is a deadline for the whole call, including
        reading the response body.
        """
        payload = snappy.compress(build_write_request(series).SerializeToString())

        headers = {
            "Content-Encoding": "snappy",
            "Content-Type": "application/x-protobuf",
            "User-Agent": self.config.user_agent,
            "X-Prometheus-Remote-Write-Version": REMOTE_WRITE_VERSION,
        }
        if options is not None:
            headers.update(options.headers)

        effective_timeout = self.config.http_client_timeout
        if timeout is not None:
            effective_timeout = min(effective_timeout, timeout)

        # requests applies its timeout to each socket operation, so the body
        # is streamed and checked against one deadline for the whole call.
        deadline = time.monotonic() + effective_timeout
        try:
            resp = self.session.post(
                self.config.write_url,
                data=payload,
                headers=headers,
                timeout=effective_timeout,
                stream=True,
            )
            try:
                raw_body = _read_body(resp, deadline, effective_timeout)
            finally:
                resp.close()
        except requests.Timeout as e:
            raise WriteError(None, f"remote write timed out after {effective_timeout}s: {e}") from e
        except requests.RequestException as e:
            raise WriteError(None, f"remote write request failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            body = raw_body.decode(resp.encoding or "utf-8", errors="replace").strip()
            raise WriteError(
                resp.status_code,
                f"expected HTTP 200 status code: actual={resp.status_code}, body={body}",
            )

        logger.debug(f"Wrote {len(series)} series to {self.config.write_url} (HTTP {resp.status_code})")
        return WriteResult(status_code=resp.status_code)


def _read_body(resp: requests.Response, deadline: float, timeout: float) -> bytes:
    """Read up to MAX_BODY_BYTES of the response body before ``deadline``."""
    if time.monotonic() > deadline:
        raise WriteError(None, f"remote write timed out after {timeout}s waiting for response")

    body = bytearray()
    # One byte at a time, so a server trickling its body cannot hold a read
    # past the deadline.
    for chunk in resp.iter_content(chunk_size=1):
        if time.monotonic() > deadline:
            raise WriteError(None, f"remote write timed out after {timeout}s reading response body")
        body.extend(chunk)
        if len(body) >= MAX_BODY_BYTES:
            break
    return bytes(body)
