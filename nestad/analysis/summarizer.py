"""
Scan Summarizer
===============

Aggregates a ScanResult into operator-facing statistics.

Because every group is scanned as its own root, one loop A -> B -> C -> A is
reported from A, from B and from C. The summary collapses those reports into
distinct cycles by a canonical signature; the records themselves are left
untouched.
"""

from collections import Counter
from typing import Optional, Callable

from ..model.schemas import ScanResult, CircularNesting


def cycle_signature(record: CircularNesting) -> tuple:
    """Canonical form of the loop in a CircularNesting record.

    The closing repetition is dropped and the loop is rotated to start at its
    smallest id, so (A, B, C, A), (B, C, A, B) and (C, A, B, C) share one
    signature: (A, B, C).
    """
    loop = record.cycle[:-1]
    start = loop.index(min(loop))
    return loop[start:] + loop[:start]


class NestingSummarizer:
    """Creates summaries of a scan.

    Usage:
        summarizer = NestingSummarizer(result, source.get_group_name)
        summary = summarizer.summarize()
    """

    def __init__(
        self,
        result: ScanResult,
        name_of: Optional[Callable[[str], str]] = None
    ):
        self.result = result
        self.name_of = name_of or (lambda group_id: group_id)

    def distinct_cycles(self) -> list[dict]:
        """Distinct loops with the number of times each was reported."""
        counts = Counter(cycle_signature(r) for r in self.result.circular_nesting)
        cycles = []
        for signature, reports in counts.most_common():
            cycles.append({
                'groups': [self.name_of(g) for g in signature],
                'group_ids': list(signature),
                'length': len(signature),
                'reports': reports,
            })
        return cycles

    def roots_exceeding_depth(self) -> list[str]:
        """Scan roots that have at least one chain over the limit."""
        roots = dict.fromkeys(r.path[0] for r in self.result.depth_exceeded)
        return [self.name_of(root) for root in roots]

    def failures_by_error(self) -> dict[str, int]:
        """Lookup failure counts keyed by error class."""
        return dict(Counter(
            r.error_detail.split(':', 1)[0] for r in self.result.lookup_failures
        ))

    def failed_groups(self) -> list[str]:
        """Distinct groups whose lookup failed."""
        groups = dict.fromkeys(r.group_id for r in self.result.lookup_failures)
        return [self.name_of(group_id) for group_id in groups]

    def most_involved_groups(self, limit: int = 10) -> list[dict]:
        """Groups at which anomalies were most often detected."""
        counts = Counter(r.group_id for r in self.result.anomalies)
        return [
            {'group': self.name_of(group_id), 'group_id': group_id, 'anomalies': count}
            for group_id, count in counts.most_common(limit)
        ]

    def summarize(self) -> dict:
        """Build the complete summary dictionary."""
        result = self.result
        return {
            'total_groups': result.total_groups,
            'roots_scanned': result.roots_scanned,
            'roots_incomplete': result.roots_incomplete,
            'max_depth': result.max_depth,
            'timed_out': result.timed_out,
            'circular_nesting_reports': result.cycle_count,
            'distinct_cycles': self.distinct_cycles(),
            'depth_exceeded_reports': result.depth_count,
            'roots_exceeding_depth': self.roots_exceeding_depth(),
            'lookup_failure_reports': result.failure_count,
            'failed_groups': self.failed_groups(),
            'failures_by_error': self.failures_by_error(),
            'most_involved_groups': self.most_involved_groups(),
        }
