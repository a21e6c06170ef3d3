"""Command line entry point: write one rule result to a remote-write endpoint."""
import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Dict, List

from rulewriter.config import load_config
from rulewriter.errors import WriterError
from rulewriter.frames import Frame
from rulewriter.remote_client import DefaultHTTPClientProvider
from rulewriter.self_metrics import WriterMetrics
from rulewriter.writer import PrometheusWriter


def setup_logging(log_level: str):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Reduce noise from some libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def parse_labels(pairs: List[str]) -> Dict[str, str]:
    """Parse ``key=value`` arguments into a label mapping."""
    labels = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid label '{pair}', expected key=value")
        labels[key] = value
    return labels


def load_frames(path: str) -> List[Frame]:
    """Load frames from a JSON file holding a list or ``{"frames": [...]}``."""
    with open(path, 'r') as f:
        raw = json.load(f)
    if isinstance(raw, dict):
        raw = raw.get("frames", [])
    return [Frame.model_validate(item) for item in raw]


def parse_timestamp(value: str) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def main(argv=None) -> int:
    """Main function."""
    parser = argparse.ArgumentParser(
        description="Recording rule writer - send a rule result via Prometheus remote write"
    )
    parser.add_argument("--config", "-c", required=True, help="Path to configuration YAML file")
    parser.add_argument("--frames", "-f", required=True, help="Path to a JSON file with result frames")
    parser.add_argument("--name", "-n", required=True, help="Metric name to write")
    parser.add_argument("--timestamp", "-t", default=None, help="Evaluation time (ISO 8601), defaults to now")
    parser.add_argument("--label", "-l", action="append", default=[], help="Extra label key=value (repeatable)")

    args = parser.parse_args(argv)

    # Load configuration
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    # Setup logging
    setup_logging(config.global_.log_level)
    logger = logging.getLogger(__name__)
    logger.info(f"Configuration loaded from: {args.config}")
    logger.info(f"Remote write URL: {config.writer.url}")

    metrics = WriterMetrics()
    if config.global_.metrics_port:
        metrics.serve(config.global_.metrics_port)

    try:
        frames = load_frames(args.frames)
        extra_labels = parse_labels(args.label)
        t = parse_timestamp(args.timestamp)
    except (OSError, ValueError) as e:
        logger.error(f"Invalid input: {e}")
        return 1

    try:
        writer = PrometheusWriter(config.writer, DefaultHTTPClientProvider(), metrics=metrics)
        writer.write(args.name, t, frames, extra_labels)
    except WriterError as e:
        logger.error(f"Write failed: {e}")
        return 1

    logger.info(f"Wrote {args.name} from {len(frames)} frames at {t.isoformat()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
