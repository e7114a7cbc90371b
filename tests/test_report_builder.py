"""Unit tests for report generation."""

import json

import pandas as pd

from nestad.config import OutputConfig
from nestad.model.schemas import (
    CircularNesting, DepthExceeded, LookupFailure, ScanResult
)
from nestad.reporting.report_builder import (
    FAILURE_COLUMNS, ReportBuilder, generate_text_report
)


def name_of(group_id):
    return f"{group_id}-name"


def sample_result():
    result = ScanResult(total_groups=4, roots_scanned=4, max_depth=3)
    result.add(CircularNesting(("A", "B", "A")))
    result.add(CircularNesting(("B", "A", "B")))
    result.add(DepthExceeded(("C", "D", "E", "F"), limit=3))
    result.add(LookupFailure(("A", "X"), error_detail="GroupNotFound: CN=X,DC=corp,DC=local"))
    result.metadata["source"] = "in-memory graph"
    return result


class TestReportBuilder:

    def test_failure_csv(self, tmp_path):
        builder = ReportBuilder(output_dir=str(tmp_path), name_of=name_of, verbose=False)
        path = builder.write_failures(sample_result().lookup_failures)

        assert path == str(tmp_path / "nesting_failures.csv")
        frame = pd.read_csv(path)
        assert list(frame.columns) == FAILURE_COLUMNS
        assert frame.iloc[0]["GroupName"] == "X-name"
        assert frame.iloc[0]["FullPath"] == "A-name -> X-name"
        # Commas inside the detail survive CSV quoting
        assert frame.iloc[0]["ErrorDetail"] == "GroupNotFound: CN=X,DC=corp,DC=local"

    def test_no_failures_writes_nothing(self, tmp_path):
        messages = []
        builder = ReportBuilder(
            output_dir=str(tmp_path / "out"),
            verbose=False,
            progress_callback=messages.append
        )
        assert builder.write_failures([]) is None
        assert not (tmp_path / "out").exists()
        assert any("All group lookups succeeded" in m for m in messages)

    def test_config_controls_output(self, tmp_path):
        config = OutputConfig(
            output_dir=str(tmp_path),
            failures_filename="failed.csv",
            generate_json=False
        )
        result = ReportBuilder(config=config, verbose=False).build_report(sample_result())
        assert result.failures_report_path == str(tmp_path / "failed.csv")
        assert result.report_path is None
        assert not (tmp_path / "nestad_results.json").exists()

    def test_json_report(self, tmp_path):
        builder = ReportBuilder(output_dir=str(tmp_path), name_of=name_of, verbose=False)
        result = builder.build_report(sample_result())

        with open(result.report_path, encoding="utf-8") as f:
            report = json.load(f)

        assert report["circular_nesting"][0] == {
            "kind": "CircularNesting", "group_id": "A", "path": ["A", "B", "A"]
        }
        assert report["depth_exceeded"][0]["limit"] == 3
        assert report["lookup_failures"][0]["group_id"] == "X"
        assert report["failures_report_path"] == result.failures_report_path
        assert report["summary"]["circular_nesting_reports"] == 2
        assert len(report["summary"]["distinct_cycles"]) == 1
        assert report["summary"]["failures_by_error"] == {"GroupNotFound": 1}


class TestTextReport:

    def test_sections(self):
        report = generate_text_report(sample_result(), name_of)
        assert "Circular nesting reports: 2 (1 distinct)" in report
        assert "A-name -> B-name -> A-name  (seen 2x)" in report
        assert "GROUPS NESTED DEEPER THAN 3" in report
        assert "C-name -> D-name -> E-name -> F-name" in report
        assert "GroupNotFound: 1" in report
        assert "Source: in-memory graph" in report

    def test_clean_scan(self):
        report = generate_text_report(ScanResult(total_groups=2, roots_scanned=2, max_depth=5))
        assert "No circular or excessive nesting found." in report
        assert "CIRCULAR NESTING" not in report

    def test_timeout_warning(self):
        report = generate_text_report(ScanResult(timed_out=True, roots_incomplete=2))
        assert "timed out" in report
        assert "Roots cut short by the timeout: 2" in report
