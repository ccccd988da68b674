"""
Tests for Module 04 - Orchestrator.
Tests run_once (single pipeline pass) and handler (bounded retries),
plus an end-to-end pass over a two-station fixture.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, NoRegionError

from siata.errors import FetchError, ParseError, PublishError, RetriesExhaustedError
from siata.main import RunResult, handler, run_once
from siata.monitoring.reporter import MetricsReporter
from siata.publishing.publisher import Publisher


@pytest.fixture()
def aws_clients():
    """Patch boto3 client creation in siata.main; yields (s3, cloudwatch)."""
    s3, cloudwatch = MagicMock(), MagicMock()
    with patch("siata.main._aws_clients", return_value=(s3, cloudwatch)) as factory:
        factory.s3 = s3
        factory.cloudwatch = cloudwatch
        yield factory


class TestRunOnce:
    def test_end_to_end_two_stations(self, siata_client, two_station_body, s3_client, cloudwatch_client):
        client, _ = siata_client(body=two_station_body)
        result = run_once(
            http_client=client,
            publisher=Publisher(s3_client),
            reporter=MetricsReporter(cloudwatch_client),
        )
        assert result is RunResult.PUBLISHED

        json_call, js_call = s3_client.put_object.call_args_list
        raw = json_call.kwargs["Body"].decode("utf-8")
        published = json.loads(raw)
        assert len(published["stations"]) == 2
        assert published["stations"][0]["name"] == "Est. #1 Medellín"
        assert published["stations"][0]["value"] == -1
        assert published["stations"][1]["value"] == 23.5
        assert js_call.kwargs["Body"].decode("utf-8") == "var data = " + raw + ";"

        metric_data = cloudwatch_client.put_metric_data.call_args.kwargs["MetricData"]
        assert len(metric_data) == 2
        assert metric_data[0]["Value"] == 0.0
        assert metric_data[0]["Dimensions"] == [{"Name": "StationName", "Value": "Est. No. 1 Medellin"}]
        assert metric_data[1]["Value"] == 23.5
        assert metric_data[1]["Dimensions"] == [{"Name": "StationName", "Value": "Universidad Nacional"}]

    def test_empty_feed_publishes_nothing(self, siata_client, aws_clients):
        client, _ = siata_client(body=b'{"feature_vector": []}')
        assert run_once(http_client=client) is RunResult.EMPTY_FEED
        aws_clients.assert_not_called()

    def test_parse_error_aborts_before_publish(self, siata_client, make_point, make_body, aws_clients):
        client, _ = siata_client(body=make_body(make_point(), make_point(latitude="lat?")))
        with pytest.raises(ParseError) as info:
            run_once(http_client=client)
        assert info.value.field == "latitude"
        aws_clients.s3.put_object.assert_not_called()
        aws_clients.cloudwatch.put_metric_data.assert_not_called()

    def test_publish_error_skips_metrics(self, siata_client, two_station_body, aws_clients):
        aws_clients.s3.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject"
        )
        client, _ = siata_client(body=two_station_body)
        with pytest.raises(PublishError):
            run_once(http_client=client)
        aws_clients.cloudwatch.put_metric_data.assert_not_called()

    def test_aws_setup_failure_is_publish_error(self, siata_client, two_station_body):
        client, _ = siata_client(body=two_station_body)
        with patch("siata.main.boto3.session.Session", side_effect=NoRegionError()):
            with pytest.raises(PublishError) as info:
                run_once(http_client=client)
        assert isinstance(info.value.__cause__, NoRegionError)

    def test_builds_aws_clients_when_needed(self, siata_client, two_station_body, aws_clients):
        client, _ = siata_client(body=two_station_body)
        assert run_once(http_client=client) is RunResult.PUBLISHED
        aws_clients.assert_called_once()
        assert aws_clients.s3.put_object.call_count == 2
        aws_clients.cloudwatch.put_metric_data.assert_called_once()


class TestHandler:
    def test_three_failures_exhaust_retries(self):
        with patch("siata.main.fetch", side_effect=FetchError("boom")) as fetch:
            with pytest.raises(RetriesExhaustedError, match="could not get data after 3 attempts") as info:
                handler()
        assert fetch.call_count == 3
        assert info.value.__cause__ is None

    def test_failure_then_success(self, two_station_body, aws_clients):
        with patch("siata.main.fetch", side_effect=[FetchError("boom"), two_station_body]) as fetch:
            assert handler() is RunResult.PUBLISHED
        assert fetch.call_count == 2

    def test_first_success_stops(self, two_station_body, aws_clients):
        with patch("siata.main.fetch", return_value=two_station_body) as fetch:
            assert handler({"source": "aws.events"}, None) is RunResult.PUBLISHED
        assert fetch.call_count == 1

    def test_empty_feed_is_success(self, aws_clients):
        with patch("siata.main.fetch", return_value=b'{"feature_vector": []}') as fetch:
            assert handler() is RunResult.EMPTY_FEED
        assert fetch.call_count == 1
        aws_clients.assert_not_called()

    def test_parse_errors_are_retried(self, make_point, make_body, aws_clients):
        body = make_body(make_point(value="sin dato"))
        with patch("siata.main.fetch", return_value=body) as fetch:
            with pytest.raises(RetriesExhaustedError):
                handler()
        assert fetch.call_count == 3
        aws_clients.s3.put_object.assert_not_called()

    def test_partial_success_is_retried_from_scratch(self, two_station_body, aws_clients):
        aws_clients.cloudwatch.put_metric_data.side_effect = [
            ClientError({"Error": {"Code": "Throttling", "Message": "Rate exceeded"}}, "PutMetricData"),
            {},
        ]
        with patch("siata.main.fetch", return_value=two_station_body) as fetch:
            assert handler() is RunResult.PUBLISHED
        assert fetch.call_count == 2
        assert aws_clients.s3.put_object.call_count == 4

    def test_missing_aws_profile_is_retried(self, two_station_body, monkeypatch):
        monkeypatch.setenv("AWS_PROFILE", "does-not-exist")
        with patch("siata.main.fetch", return_value=two_station_body) as fetch:
            with pytest.raises(RetriesExhaustedError) as info:
                handler()
        assert fetch.call_count == 3
        assert info.value.__cause__ is None

    def test_unexpected_error_propagates(self):
        with patch("siata.main.fetch", side_effect=RuntimeError("bug")) as fetch:
            with pytest.raises(RuntimeError):
                handler()
        assert fetch.call_count == 1
