"""
SIATA PM2.5 - Job Entry Point

One run of the job:
    1. Fetch the PM2.5 layer from SIATA
    2. Normalize every record into a Station (any bad record aborts the run)
    3. Publish pm25.json and data.js to S3
    4. Report one PM25 metric per station to CloudWatch

handler() wraps that in up to MAX_ATTEMPTS tries with no backoff. A run
that fails part-way (e.g. published but metrics failed) is retried from
scratch and overwrites the published artifacts again.

handler() is what the cloud scheduler invokes. `python -m siata.main`
drives the same handler locally from APScheduler.
"""

import logging
import signal
import sys
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from siata.config import AWS_REGION, JSON_KEY, LOG_LEVEL, MAX_ATTEMPTS, POLL_INTERVAL
from siata.errors import PipelineError, PublishError, RetriesExhaustedError
from siata.ingestion.normalizer import normalize_all
from siata.ingestion.siata_connector import body_preview, decode_points, fetch
from siata.monitoring.reporter import MetricsReporter
from siata.publishing.publisher import Publisher, build_dataset

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [SIATA] %(levelname)s %(name)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("siata.main")


class RunResult(str, Enum):
    PUBLISHED = "published"
    EMPTY_FEED = "empty_feed"


def _aws_clients():
    """S3 and CloudWatch clients from one session (default credential chain)."""
    session = boto3.session.Session(region_name=AWS_REGION)
    return session.client("s3"), session.client("cloudwatch")


def run_once(
    http_client: Optional[httpx.Client] = None,
    publisher: Optional[Publisher] = None,
    reporter: Optional[MetricsReporter] = None,
) -> RunResult:
    """
    Run the fetch -> normalize -> publish -> report pipeline once.

    AWS clients are only created when there is something to publish and
    no publisher/reporter was passed in.

    Raises:
        PipelineError: The first error hit; nothing after it runs.
    """
    body = fetch(http_client)
    points = decode_points(body)

    # Empty feed: leave the last published data in place.
    if not points:
        logger.warning("SIATA returned no stations, nothing published: %s", body_preview(body))
        return RunResult.EMPTY_FEED

    stations = normalize_all(points)
    dataset = build_dataset(stations)

    if publisher is None or reporter is None:
        try:
            s3_client, cloudwatch_client = _aws_clients()
        except (BotoCoreError, ClientError) as e:
            logger.error("Could not set up AWS clients: %s", e)
            raise PublishError(JSON_KEY, f"AWS client setup failed: {e}") from e
        if publisher is None:
            publisher = Publisher(s3_client)
        if reporter is None:
            reporter = MetricsReporter(cloudwatch_client)

    publisher.publish(dataset)
    reporter.report(dataset.stations)
    return RunResult.PUBLISHED


def handler(event=None, context=None) -> RunResult:
    """
    Scheduler entry point. `event` and `context` are accepted so the
    function can be registered as a Lambda handler; both are ignored.

    Raises:
        RetriesExhaustedError: Every attempt failed. Carries no detail about
                               which error each attempt hit; those are logged.
    """
    for attempt in range(1, MAX_ATTEMPTS + 1):
        logger.info("[%d/%d] Fetching data", attempt, MAX_ATTEMPTS)
        try:
            result = run_once()
        except PipelineError as exc:
            logger.warning("[%d/%d] Attempt failed: %s", attempt, MAX_ATTEMPTS, exc)
            continue
        logger.info("[%d/%d] Run finished: %s", attempt, MAX_ATTEMPTS, result.value)
        return result

    logger.error("Could not get data after %d attempts", MAX_ATTEMPTS)
    raise RetriesExhaustedError(MAX_ATTEMPTS)


# ── Local scheduler ───────────────────────────────────────────────────────────

_running = True


def _shutdown(sig, frame):
    global _running
    logger.info("Shutdown signal (%s) - stopping scheduler.", sig)
    _running = False


def _scheduled_run() -> None:
    """APScheduler job: one handler invocation, failure logged not raised."""
    try:
        handler()
    except RetriesExhaustedError as exc:
        logger.error("Scheduled run failed: %s", exc)


def main() -> None:
    from apscheduler.schedulers.background import BackgroundScheduler

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        func=_scheduled_run,
        trigger="interval",
        seconds=POLL_INTERVAL,
        next_run_time=datetime.now(timezone.utc),  # run immediately on start
        id="siata_poll",
        name="SIATA PM2.5 Poll",
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info("Scheduler started - polling every %ds", POLL_INTERVAL)

    try:
        while _running:
            time.sleep(1)
    finally:
        logger.info("Stopping scheduler…")
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped cleanly.")


if __name__ == "__main__":
    main()
