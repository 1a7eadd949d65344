"""Tests for the CloudWatch metrics client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from mixology.services.metrics import MetricsClient


def _make_client(*, enabled: bool = False) -> MetricsClient:
    with patch.dict("os.environ", {"METRICS_ENABLED": str(enabled).lower()}):
        return MetricsClient()


class TestMetricsRecording:
    """Verify that record_success / record_failure buffer the right data."""

    def test_record_success_appends_two_data_points(self):
        client = _make_client()
        client.record_success("cocktaildb", "GET /search.php", latency_ms=123.4)
        # RequestCount + Latency
        assert len(client._buffer) == 2
        names = {m["MetricName"] for m in client._buffer}
        assert names == {"ExternalAPI/RequestCount", "ExternalAPI/Latency"}

    def test_record_failure_appends_count_and_error(self):
        client = _make_client()
        client.record_failure("openai", "invoke", error_type="APITimeoutError")
        # No latency point since default is 0
        assert len(client._buffer) == 2
        names = {m["MetricName"] for m in client._buffer}
        assert names == {"ExternalAPI/RequestCount", "ExternalAPI/ErrorCount"}

    def test_record_failure_with_latency_appends_three_data_points(self):
        client = _make_client()
        client.record_failure("cocktaildb", "GET /random.php", error_type="CocktailDBError", latency_ms=500.0)
        assert len(client._buffer) == 3

    def test_failure_dimensions_include_error_type(self):
        client = _make_client()
        client.record_failure("anthropic", "invoke_structured", error_type="BadRequestError")
        error_metric = next(m for m in client._buffer if m["MetricName"] == "ExternalAPI/ErrorCount")
        dim_map = {d["Name"]: d["Value"] for d in error_metric["Dimensions"]}
        assert dim_map == {"Service": "anthropic", "ErrorType": "BadRequestError"}


class TestTimed:
    def test_success_is_recorded(self):
        client = _make_client()
        with client.timed("cocktaildb", "GET /list.php"):
            pass
        count = next(m for m in client._buffer if m["MetricName"] == "ExternalAPI/RequestCount")
        assert {d["Name"]: d["Value"] for d in count["Dimensions"]}["Status"] == "success"

    def test_failure_is_recorded_and_reraised(self):
        client = _make_client()
        with pytest.raises(TimeoutError):
            with client.timed("cocktaildb", "GET /random.php"):
                raise TimeoutError("slow")
        error = next(m for m in client._buffer if m["MetricName"] == "ExternalAPI/ErrorCount")
        assert {d["Name"]: d["Value"] for d in error["Dimensions"]}["ErrorType"] == "TimeoutError"


class TestMetricsFlush:
    """Verify flush behaviour with and without CloudWatch enabled."""

    def test_flush_when_disabled_sends_nothing_and_clears(self):
        client = _make_client()
        client.record_success("cocktaildb", "GET /search.php", latency_ms=100.0)
        assert client.flush() == 0
        assert client._buffer == []

    def test_flush_when_enabled_calls_put_metric_data(self):
        client = _make_client(enabled=True)
        mock_cw = MagicMock()
        client._cw_client = mock_cw

        client.record_success("cocktaildb", "GET /search.php", latency_ms=100.0)
        sent = client.flush()

        assert sent == 2
        mock_cw.put_metric_data.assert_called_once()
        call_args = mock_cw.put_metric_data.call_args
        assert call_args[1]["Namespace"] == "Mixology"
        assert len(call_args[1]["MetricData"]) == 2

    def test_flush_empty_buffer_returns_zero(self):
        assert _make_client(enabled=True).flush() == 0
