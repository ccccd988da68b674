"""
Dataset publisher - SIATA PM2.5

Serializes the station collection once and writes it to S3 twice:
    pm25.json   the JSON document
    data.js     "var data = <json>;" for direct inclusion in the map page

Both objects are public-read and overwritten on every run. There is no
atomicity across the two keys.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from botocore.exceptions import BotoCoreError, ClientError

from siata.config import ACL, BUCKET, CONTENT_TYPE, JS_KEY, JS_PREFIX, JSON_KEY, TIMEZONE
from siata.errors import PublishError
from siata.ingestion.normalizer import Station

logger = logging.getLogger(__name__)

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# Integral floats below this magnitude are written without a fraction.
_MAX_PLAIN_INT = 1e21


def format_generated_at(moment: datetime) -> str:
    """
    Format like "Jan _2 15:04:05": English month, space-padded day, no year.
    Locale-independent.
    """
    return f"{_MONTHS[moment.month - 1]} {moment.day:>2} {moment:%H:%M:%S}"


def _plain_number(value: float) -> Any:
    """12.0 -> 12 so the map page shows the value the way SIATA does."""
    if value.is_integer() and abs(value) < _MAX_PLAIN_INT:
        return int(value)
    return value


def _station_payload(station: Station) -> Dict[str, Any]:
    payload = station.to_dict()
    for key in ("value", "latitude", "longitude"):
        payload[key] = _plain_number(payload[key])
    return payload


@dataclass(frozen=True)
class PublishedDataset:
    """The unit of publication: one snapshot of every station."""
    generated_at: str
    stations: Tuple[Station, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "stations": [_station_payload(s) for s in self.stations],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))


def build_dataset(stations: Sequence[Station], now: Optional[datetime] = None) -> PublishedDataset:
    """Stamp the stations with the current Bogotá time."""
    if now is None:
        now = datetime.now(ZoneInfo(TIMEZONE))
    else:
        now = now.astimezone(ZoneInfo(TIMEZONE))
    return PublishedDataset(
        generated_at=format_generated_at(now),
        stations=tuple(stations),
    )


def js_document(raw_json: str) -> str:
    return f"{JS_PREFIX}{raw_json};"


class Publisher:
    """Writes the dataset artifacts through a boto3 S3 client."""

    def __init__(self, s3_client, bucket: str = BUCKET):
        self.s3_client = s3_client
        self.bucket = bucket

    def upload(self, key: str, data: bytes) -> None:
        """
        Put one object, public-read, application/json.

        Raises:
            PublishError: If S3 rejects the write or can't be reached.
        """
        logger.info("Uploading file: %s", key)
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ACL=ACL,
                ContentType=CONTENT_TYPE,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to upload %s to %s: %s", key, self.bucket, e)
            raise PublishError(key, str(e)) from e

    def publish(self, dataset: PublishedDataset) -> str:
        """
        Write pm25.json then data.js. If the first write fails the second
        is never attempted.

        Returns:
            The serialized JSON document.
        """
        raw = dataset.to_json()
        self.upload(JSON_KEY, raw.encode("utf-8"))
        self.upload(JS_KEY, js_document(raw).encode("utf-8"))
        logger.info(
            "Published %d stations (generated_at=%s)",
            len(dataset.stations), dataset.generated_at,
        )
        return raw
