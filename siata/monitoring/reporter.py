"""
CloudWatch metrics reporter.

Sends one PM25 data point per station, dimensioned by the sanitized
station name. Negative readings (sensor faults) are reported as zero;
the stations themselves are left untouched.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from siata.config import METRIC_DIMENSION, METRIC_NAME, METRIC_NAMESPACE, METRIC_UNIT
from siata.errors import ReportError
from siata.ingestion.normalizer import Station
from siata.monitoring.names import ascii_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetricPoint:
    """One CloudWatch data point derived from a Station."""
    station_name: str
    value: float

    @classmethod
    def from_station(cls, station: Station) -> "MetricPoint":
        return cls(
            station_name=ascii_name(station.name),
            value=0.0 if station.value < 0 else station.value,
        )

    def to_datum(self) -> Dict[str, Any]:
        return {
            "MetricName": METRIC_NAME,
            "Unit": METRIC_UNIT,
            "Value": self.value,
            "Dimensions": [
                {"Name": METRIC_DIMENSION, "Value": self.station_name},
            ],
        }


def build_points(stations: Sequence[Station]) -> List[MetricPoint]:
    return [MetricPoint.from_station(s) for s in stations]


class MetricsReporter:
    """Thin wrapper over a boto3 CloudWatch client."""

    def __init__(self, cloudwatch_client):
        self.client = cloudwatch_client

    def report(self, stations: Sequence[Station]) -> List[MetricPoint]:
        """
        Submit one data point per station in a single put_metric_data call.

        Returns:
            The submitted points.

        Raises:
            ReportError: If CloudWatch rejects the batch or can't be reached.
        """
        points = build_points(stations)
        if not points:
            logger.info("No stations to report")
            return points

        try:
            self.client.put_metric_data(
                Namespace=METRIC_NAMESPACE,
                MetricData=[p.to_datum() for p in points],
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to record %d metrics: %s", len(points), e)
            raise ReportError(f"put_metric_data failed: {e}") from e

        logger.info("Recorded %d metrics in %s", len(points), METRIC_NAMESPACE)
        return points
