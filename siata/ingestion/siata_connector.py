"""
SIATA map-layer connector.

Fetches the PM2.5 station layer from the SIATA map service and decodes the
raw feature list. The service is slow and occasionally flaky; this module
never retries, it only reports what went wrong.
"""

import json
import logging
import time
from typing import List, Optional

import httpx

from siata.config import (
    CONNECT_TIMEOUT,
    KEEPALIVE_EXPIRY,
    REQUEST_TIMEOUT,
    SIATA_LAYER_ID,
    SIATA_URL,
)
from siata.errors import DecodeError, FetchError

logger = logging.getLogger(__name__)

BODY_PREVIEW_CHARS = 500


def make_client() -> httpx.Client:
    """
    HTTP client tuned for the SIATA service.

    Reads may block up to REQUEST_TIMEOUT; pool, connect and write (the form
    body is tiny) are capped at CONNECT_TIMEOUT.
    """
    return httpx.Client(
        timeout=httpx.Timeout(
            REQUEST_TIMEOUT,
            connect=CONNECT_TIMEOUT,
            write=CONNECT_TIMEOUT,
            pool=CONNECT_TIMEOUT,
        ),
        limits=httpx.Limits(keepalive_expiry=KEEPALIVE_EXPIRY),
    )


def body_preview(body: bytes, limit: int = BODY_PREVIEW_CHARS) -> str:
    """First `limit` characters of a response body, for log lines."""
    text = body.decode("utf-8", errors="replace")
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def _check_deadline(deadline: float) -> None:
    if time.monotonic() > deadline:
        raise FetchError(f"SIATA response not complete after {REQUEST_TIMEOUT:.0f}s")


def fetch(client: Optional[httpx.Client] = None) -> bytes:
    """
    POST the layer request and return the raw response body.

    Args:
        client: Optional httpx client. When omitted a client is built with
                make_client() and closed before returning.

    Returns:
        Response body bytes.

    Raises:
        FetchError: On timeout, transport failure or non-2xx status, or when
                    the REQUEST_TIMEOUT deadline has passed once the
                    headers or any body chunk arrive. The deadline is only
                    checked at those points, so a stalled exchange gives up
                    after at most 2 * REQUEST_TIMEOUT (one read timeout
                    past the deadline).
    """
    owns_client = client is None
    if owns_client:
        client = make_client()

    deadline = time.monotonic() + REQUEST_TIMEOUT
    logger.info("Requesting map data")
    try:
        with client.stream(
            "POST",
            SIATA_URL,
            data={"id_capa": SIATA_LAYER_ID},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        ) as resp:
            _check_deadline(deadline)
            resp.raise_for_status()
            chunks = []
            for chunk in resp.iter_bytes():
                _check_deadline(deadline)
                chunks.append(chunk)
    except httpx.TimeoutException as e:
        logger.error("SIATA request timed out: %s", e)
        raise FetchError("SIATA request timed out") from e
    except httpx.HTTPStatusError as e:
        logger.error("SIATA HTTP error %s", e.response.status_code)
        raise FetchError(f"SIATA returned HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        logger.error("SIATA network error: %s", e)
        raise FetchError(f"SIATA network error: {e}") from e
    finally:
        if owns_client:
            client.close()

    body = b"".join(chunks)
    logger.debug("SIATA responded with %d bytes", len(body))
    return body


def decode_points(body: bytes) -> List[dict]:
    """
    Decode the upstream body into its list of raw station records.

    A missing or null feature_vector is an empty feed, not an error.

    Raises:
        DecodeError: Body is not JSON, not an object, or feature_vector is
                     not a list of objects.
    """
    logger.info("Parsing map data")
    try:
        payload = json.loads(body)
    except (ValueError, RecursionError) as e:
        logger.error("SIATA returned malformed JSON: %s", body_preview(body))
        raise DecodeError(f"response is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        logger.error("SIATA returned unexpected payload: %s", body_preview(body))
        raise DecodeError(f"expected a JSON object, got {type(payload).__name__}")

    items = payload.get("feature_vector")
    if items is None:
        items = []
    if not isinstance(items, list):
        raise DecodeError(f"feature_vector must be a list, got {type(items).__name__}")

    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise DecodeError(f"feature_vector[{i}] must be an object, got {type(item).__name__}")

    logger.info("Got %d items", len(items))
    return items
