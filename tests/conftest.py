"""Shared test fixtures for the SIATA PM2.5 test suite."""

import json
from unittest.mock import MagicMock

import httpx
import pytest


def _leaf(value):
    return {"valor_alfanumerico": value}


def build_point(
    name="Universidad Nacional",
    value="18",
    description="Buena",
    latitude="6.2601",
    longitude="-75.5778",
    updated_at="2019-03-20 10:00:00",
):
    """A raw SIATA feature_vector record, shaped like the live service."""
    return {
        "atributos": {
            "metadato": {"name": _leaf(name)},
            "descripcion": {
                "ICA_PM25_Valor": _leaf(value),
                "ICA_PM25_Descripcion": _leaf(description),
                "Longitud": _leaf(longitude),
                "Latitud": _leaf(latitude),
                "fecha_ultima_actualizacion": _leaf(updated_at),
            },
        }
    }


@pytest.fixture()
def make_point():
    """Factory for raw SIATA records."""
    return build_point


@pytest.fixture()
def make_body():
    """Factory for an upstream response body wrapping the given records."""
    def _make(*points):
        return json.dumps({"feature_vector": list(points)}).encode("utf-8")
    return _make


@pytest.fixture()
def two_station_body():
    """One negative reading, one name with '#' and an accent."""
    return json.dumps({
        "feature_vector": [
            build_point(
                name="Est. #1 Medellín",
                value="-1",
                description="Dato no válido",
                latitude="6.2442",
                longitude="-75.5812",
                updated_at="2019-03-20 10:00:00",
            ),
            build_point(
                name="Universidad Nacional",
                value="23.5",
                description="Moderada",
                latitude="6.2601",
                longitude="-75.5778",
                updated_at="2019-03-20 09:00:00",
            ),
        ]
    }).encode("utf-8")


@pytest.fixture()
def siata_client():
    """
    Factory for an httpx.Client backed by MockTransport.

    Returns (client, requests) where `requests` collects every request the
    transport saw.
    """
    def _make(body=b"", status_code=200, exc=None):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if exc is not None:
                raise exc
            return httpx.Response(status_code, content=body)

        return httpx.Client(transport=httpx.MockTransport(handler)), requests
    return _make


@pytest.fixture()
def s3_client():
    return MagicMock()


@pytest.fixture()
def cloudwatch_client():
    return MagicMock()
