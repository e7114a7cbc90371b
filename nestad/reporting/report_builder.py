"""
Report Builder Module
=====================

Persists scan results.

The reports are:
- A CSV of unresolved group lookups (GroupName, FullPath, ErrorDetail),
  written only when there is at least one failure
- A JSON report with every anomaly and the scan summary
- A plain-text summary for the console

Design Decisions:
-----------------
1. pandas writes the CSV so quoting of DNs with commas is handled for us
2. An empty failure list produces an all-clear message instead of a file
3. Paths are rendered with group display names joined by " -> "
"""

import json
from pathlib import Path
from typing import Optional, Callable

import pandas as pd

from ..config import OutputConfig
from ..model.schemas import ScanResult, LookupFailure, format_path
from ..analysis.summarizer import NestingSummarizer


FAILURE_COLUMNS = ["GroupName", "FullPath", "ErrorDetail"]


class ReportBuilder:
    """Writes scan reports.

    Usage:
        builder = ReportBuilder(output_dir="output", name_of=source.get_group_name)
        builder.build_report(result)
        print(result.failures_report_path, result.report_path)
    """

    def __init__(
        self,
        output_dir: str = "output",
        name_of: Optional[Callable[[str], str]] = None,
        config: Optional[OutputConfig] = None,
        verbose: bool = True,
        progress_callback: Optional[Callable[[str], None]] = None
    ):
        """Initialize the report builder.

        Args:
            output_dir: Directory for output files (ignored when config is given)
            name_of: Group id -> display name resolver
            config: Output configuration (file names, JSON toggle)
            verbose: Whether to print progress messages
            progress_callback: Optional callback for progress updates
        """
        self.config = config or OutputConfig(output_dir=output_dir)
        self.output_dir = Path(self.config.output_dir)
        self.name_of = name_of or (lambda group_id: group_id)
        self.verbose = verbose
        self.progress_callback = progress_callback

    def _log(self, message: str) -> None:
        """Log a message to console and/or callback."""
        if self.verbose:
            print(message)
        if self.progress_callback:
            self.progress_callback(message)

    def build_report(self, result: ScanResult) -> ScanResult:
        """Write every configured report and record their paths on result."""
        result.failures_report_path = self.write_failures(result.lookup_failures)
        if self.config.generate_json:
            result.report_path = self.save_json_report(result)
        return result

    def failures_frame(self, failures: list[LookupFailure]) -> pd.DataFrame:
        """Tabulate lookup failures in report column order."""
        rows = [
            {
                "GroupName": self.name_of(failure.group_id),
                "FullPath": format_path(failure.path, self.name_of),
                "ErrorDetail": failure.error_detail,
            }
            for failure in failures
        ]
        return pd.DataFrame(rows, columns=FAILURE_COLUMNS)

    def write_failures(self, failures: list[LookupFailure]) -> Optional[str]:
        """Write the lookup failure CSV.

        Returns:
            Path to the CSV, or None when there were no failures
        """
        if not failures:
            self._log("[+] All group lookups succeeded - no failure report written")
            return None

        self.output_dir.mkdir(parents=True, exist_ok=True)
        csv_path = self.output_dir / self.config.failures_filename
        self.failures_frame(failures).to_csv(csv_path, index=False, encoding='utf-8')

        self._log(f"[!] {len(failures)} group lookups failed - details in {csv_path}")
        return str(csv_path)

    def save_json_report(self, result: ScanResult) -> str:
        """Save the full scan report as JSON.

        Returns:
            Path to saved JSON file
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        json_path = self.output_dir / self.config.json_filename

        report_dict = result.to_dict()
        report_dict['report_path'] = str(json_path)
        report_dict['summary'] = NestingSummarizer(result, self.name_of).summarize()

        with open(json_path, 'w', encoding='utf-8') as f:
            json.dump(report_dict, f, indent=2, default=str)

        self._log(f"[+] JSON report saved to {json_path}")
        return str(json_path)


def generate_text_report(
    result: ScanResult,
    name_of: Optional[Callable[[str], str]] = None,
    max_items: int = 20
) -> str:
    """Generate a text-based report summary.

    Args:
        result: ScanResult to summarize
        name_of: Group id -> display name resolver
        max_items: Maximum entries listed per section

    Returns:
        Formatted text report
    """
    summary = NestingSummarizer(result, name_of).summarize()

    lines = [
        "=" * 60,
        "nestAD - Group Nesting Analysis Report",
        "=" * 60,
        "",
        f"Started: {result.started_at or 'Unknown'}",
        f"Finished: {result.finished_at or 'Unknown'}",
        f"Source: {result.metadata.get('source', 'Unknown')}",
        "",
        "SUMMARY",
        "-" * 40,
        f"Groups: {summary['total_groups']} ({summary['roots_scanned']} scanned as roots)",
        f"Maximum depth: {summary['max_depth']}",
        f"Circular nesting reports: {summary['circular_nesting_reports']} "
        f"({len(summary['distinct_cycles'])} distinct)",
        f"Depth limit reports: {summary['depth_exceeded_reports']}",
        f"Lookup failures: {summary['lookup_failure_reports']}",
    ]

    if result.timed_out:
        lines.append("WARNING: scan timed out - results are incomplete")
    if result.roots_incomplete:
        lines.append(f"Roots cut short by the timeout: {result.roots_incomplete}")

    if summary['distinct_cycles']:
        lines.extend(["", "CIRCULAR NESTING", "-" * 40])
        for cycle in summary['distinct_cycles'][:max_items]:
            loop = cycle['groups'] + cycle['groups'][:1]
            lines.append(f"  {' -> '.join(loop)}  (seen {cycle['reports']}x)")

    if summary['roots_exceeding_depth']:
        lines.extend(["", f"GROUPS NESTED DEEPER THAN {result.max_depth}", "-" * 40])
        for record in result.depth_exceeded[:max_items]:
            lines.append(f"  {format_path(record.path, name_of)}")

    if summary['failures_by_error']:
        lines.extend(["", "LOOKUP FAILURES", "-" * 40])
        for error, count in sorted(summary['failures_by_error'].items()):
            lines.append(f"  {error}: {count}")

    if not result.anomalies:
        lines.extend(["", "No circular or excessive nesting found."])

    lines.extend([
        "",
        "=" * 60,
        "End of Report",
        "=" * 60,
    ])

    return "\n".join(lines)
