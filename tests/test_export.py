"""Tests for JSON and CSV export."""

from __future__ import annotations

import json

import pytest

from loadbench.errors import ExportError
from loadbench.export import export_results, format_csv, format_export, format_json
from loadbench.models import ExportConfig, ExportFormat, RequestResult
from loadbench.reporters import finalize_run
from loadbench.stats import StatsCollector


@pytest.fixture()
def mixed_stats():
    collector = StatsCollector()
    collector.add_results(
        [
            RequestResult(duration_ms=10, status=200),
            RequestResult(duration_ms=20, status=200),
            RequestResult(duration_ms=30, status=500, error="HTTP 500"),
            RequestResult(duration_ms=1, status=0, error="connection refused"),
        ]
    )
    return collector.get_stats()


class TestJsonExport:
    """JSON export document."""

    def test_round_trip_total(self, mixed_stats) -> None:
        """Parsing the export yields the same total request count."""
        data = json.loads(format_json(mixed_stats, 2.0))
        assert data["summary"]["totalRequests"] == mixed_stats.total

    def test_document_shape(self, mixed_stats) -> None:
        data = json.loads(format_json(mixed_stats, 2.0))
        assert data["summary"] == {
            "totalRequests": 4,
            "successful": 2,
            "failed": 2,
            "duration": 2.0,
            "requestsPerSecond": 2.0,
        }
        assert set(data["latency"]) == {
            "min", "max", "avg", "p10", "p25", "p50", "p75", "p90", "p95", "p99"
        }
        assert data["latency"]["min"] == 0.01
        assert data["latency"]["max"] == 0.02
        assert data["statusCodes"] == {"200": 2, "500": 1}
        assert data["errors"] == ["HTTP 500", "connection refused"]

    def test_empty_run_has_null_latency(self) -> None:
        data = json.loads(format_json(StatsCollector().get_stats(), 0.0))
        assert data["summary"]["requestsPerSecond"] == 0
        assert all(value is None for value in data["latency"].values())
        assert data["statusCodes"] == {}


class TestCsvExport:
    """CSV export rows."""

    def test_header_and_rows(self, mixed_stats) -> None:
        lines = format_csv(mixed_stats, 2.0).splitlines()
        assert lines[0] == "metric,value"
        rows = dict(line.split(",") for line in lines[1:])
        assert rows["total_requests"] == "4"
        assert rows["successful"] == "2"
        assert rows["failed"] == "2"
        assert rows["duration_secs"] == "2.0000"
        assert rows["requests_per_sec"] == "2.0000"
        assert rows["latency_p50_secs"] == "0.0100"
        assert rows["status_200"] == "2"
        assert rows["status_500"] == "1"
        assert "status_0" not in rows

    def test_every_row_has_two_columns(self, mixed_stats) -> None:
        for line in format_csv(mixed_stats, 1.0).splitlines():
            assert len(line.split(",")) == 2

    def test_empty_run_leaves_latency_blank(self) -> None:
        rows = dict(
            line.split(",") for line in format_csv(StatsCollector().get_stats(), 0.0).splitlines()
        )
        assert rows["latency_avg_secs"] == ""
        assert rows["requests_per_sec"] == "0.0000"


class TestExportResults:
    """Writing exports and falling back when that fails."""

    def test_writes_file(self, tmp_path, mixed_stats, recorded_console) -> None:
        path = tmp_path / "results.json"
        export_results(mixed_stats, 2.0, ExportFormat.JSON, path, recorded_console)

        assert json.loads(path.read_text())["summary"]["totalRequests"] == 4
        assert "Results exported to" in recorded_console.export_text()

    def test_prints_without_path(self, mixed_stats, recorded_console) -> None:
        export_results(mixed_stats, 2.0, ExportFormat.CSV, None, recorded_console)
        assert "metric,value" in recorded_console.export_text()

    def test_unwritable_path_raises(self, tmp_path, mixed_stats, recorded_console) -> None:
        path = tmp_path / "missing" / "results.csv"
        with pytest.raises(ExportError) as exc_info:
            export_results(mixed_stats, 2.0, ExportFormat.CSV, path, recorded_console)
        assert str(path) in str(exc_info.value)

    def test_finalize_falls_back_to_summary(self, tmp_path, mixed_stats, recorded_console) -> None:
        """A failed export warns and still prints the summary."""
        export = ExportConfig(format=ExportFormat.JSON, output=str(tmp_path / "nope" / "out.json"))

        finalize_run(recorded_console, mixed_stats, 2.0, export)

        output = recorded_console.export_text()
        assert "Warning: Failed to export results" in output
        assert "Summary:" in output

    def test_format_export_dispatch(self, mixed_stats) -> None:
        assert format_export(mixed_stats, 1.0, ExportFormat.CSV).startswith("metric,value")
        assert format_export(mixed_stats, 1.0, ExportFormat.JSON).startswith("{")


class TestStatusCodeOrder:
    """Status codes are exported in ascending order."""

    @pytest.fixture()
    def unordered_stats(self):
        collector = StatsCollector()
        collector.add_results(
            [
                RequestResult(duration_ms=5, status=503, error="HTTP 503"),
                RequestResult(duration_ms=5, status=404, error="HTTP 404"),
                RequestResult(duration_ms=5, status=200),
            ]
        )
        return collector.get_stats()

    def test_json_keys_sorted(self, unordered_stats) -> None:
        data = json.loads(format_json(unordered_stats, 1.0))
        assert list(data["statusCodes"]) == ["200", "404", "503"]

    def test_csv_rows_sorted(self, unordered_stats) -> None:
        lines = format_csv(unordered_stats, 1.0).splitlines()
        assert [line for line in lines if line.startswith("status_")] == [
            "status_200,1",
            "status_404,1",
            "status_503,1",
        ]
