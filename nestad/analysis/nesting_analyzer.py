"""
Group Nesting Analyzer
======================

Depth- and cycle-aware walk of the group containment graph.

Every group in the directory is used as a scan root. From each root the
analyzer follows "group contains group" edges depth-first and reports:

- CircularNesting: the chain reached a group already on the current path
- DepthExceeded: the chain reached max_depth ancestors
- LookupFailure: the directory could not resolve a group's children

Design Decisions:
-----------------
1. visited/path are immutable snapshots (frozenset/tuple). A branch extends
   its own copy, so siblings never see each other's traversal state.
2. Each root collects records into its own list; the driver merges them.
   There is no shared mutable accumulator, even with parallel workers.
3. Cycle and depth anomalies are printed as soon as they are detected.
   Lookup failures are only collected and reported in bulk at the end.
4. The same structural defect seen from several roots is reported once per
   root; deduplication is a summary concern (see summarizer.py).
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Optional, Callable

from ..config import AnalysisConfig
from ..ingestion.source import DirectorySource
from ..model.schemas import (
    GroupId, AnomalyRecord, CircularNesting, DepthExceeded, LookupFailure,
    ScanResult, format_path
)


class NestingAnalyzer:
    """Scans a directory for circular and excessively deep group nesting.

    Usage:
        analyzer = NestingAnalyzer(GraphDirectorySource(graph), AnalysisConfig(max_depth=5))
        result = analyzer.run()
        print(result.cycle_count, result.depth_count, result.failure_count)

        # Single root, no driver
        records = analyzer.scan_root("S-1-5-21-1-512")
    """

    def __init__(
        self,
        source: DirectorySource,
        config: Optional[AnalysisConfig] = None,
        verbose: bool = True,
        progress_callback: Optional[Callable[[str], None]] = None
    ):
        """Initialize the analyzer.

        Args:
            source: Directory source to read groups from
            config: Analysis configuration (uses defaults if None)
            verbose: Whether to print progress messages
            progress_callback: Optional callback for progress and warnings
        """
        self.source = source
        self.config = config or AnalysisConfig()
        self.verbose = verbose
        self.progress_callback = progress_callback

        self._deadline: Optional[float] = None
        self._stopped = threading.Event()
        # Per-thread flag: did the timeout cut the current root short
        self._root_state = threading.local()

    def _log(self, message: str, always: bool = False) -> None:
        """Log a message to console and/or callback."""
        if self.verbose or always:
            print(message)
        if self.progress_callback:
            self.progress_callback(message)

    @property
    def max_depth(self) -> int:
        return self.config.max_depth

    def explore(
        self,
        group: GroupId,
        visited: frozenset,
        path: tuple,
        max_depth: int,
        found: list
    ) -> None:
        """Explore the containment graph below group.

        Args:
            group: Group to examine
            visited: Groups already on the current path (equal to set(path))
            path: Chain of containing groups from the scan root, excluding group
            max_depth: Number of ancestors at which a chain is reported
            found: Root-local list receiving anomaly records
        """
        # A cycle takes precedence over the depth limit
        if group in visited:
            self._report(CircularNesting(path + (group,)), found)
            return

        if len(path) >= max_depth:
            self._report(DepthExceeded(path + (group,), limit=max_depth), found)
            return

        if self._out_of_time():
            self._root_state.truncated = True
            return

        visited = visited | {group}
        path = path + (group,)

        try:
            children = self.source.list_child_groups(group)
        except Exception as e:
            # Any lookup error ends this branch only
            found.append(LookupFailure(path, error_detail=f"{type(e).__name__}: {e}"))
            return

        for child in children:
            self.explore(child, visited, path, max_depth, found)

    def scan_root(self, root: GroupId) -> list[AnomalyRecord]:
        """Explore the graph from a single root.

        Returns:
            Anomaly records found below root, in detection order
        """
        found: list[AnomalyRecord] = []
        self.explore(root, frozenset(), (), self.max_depth, found)
        return found

    def run(self) -> ScanResult:
        """Scan every group in the directory as an independent root.

        Returns:
            ScanResult with all anomalies

        Raises:
            DirectoryUnavailable: if the group catalog cannot be listed
        """
        result = ScanResult(
            max_depth=self.max_depth,
            started_at=datetime.now().isoformat(),
            metadata={'source': self.source.describe(), 'workers': self.config.workers}
        )

        groups = self.source.list_all_groups()
        result.total_groups = len(groups)
        self._log(f"[*] Scanning {len(groups)} groups (max depth {self.max_depth})")

        self._stopped.clear()
        self._deadline = None
        if self.config.timeout:
            self._deadline = time.monotonic() + self.config.timeout

        if self.config.workers > 1 and len(groups) > 1:
            root_results = self._scan_parallel(groups)
        else:
            root_results = self._scan_sequential(groups)

        for outcome in root_results:
            if outcome is None:
                continue
            records, complete = outcome
            if complete:
                result.roots_scanned += 1
            else:
                result.roots_incomplete += 1
            for record in records:
                result.add(record)

        result.timed_out = self._stopped.is_set()
        result.finished_at = datetime.now().isoformat()

        incomplete = f" (+{result.roots_incomplete} incomplete)" if result.roots_incomplete else ""
        self._log(
            f"[+] Scan complete: {result.roots_scanned}/{result.total_groups} roots{incomplete}, "
            f"{result.cycle_count} circular, {result.depth_count} too deep, "
            f"{result.failure_count} lookup failures"
        )
        return result

    def _scan_sequential(self, groups: list[GroupId]) -> list:
        total = len(groups)
        return [self._scan_root_in_time(root, index, total) for index, root in enumerate(groups, 1)]

    def _scan_parallel(self, groups: list[GroupId]) -> list:
        """Explore roots on a thread pool; results keep enumeration order."""
        total = len(groups)
        with ThreadPoolExecutor(max_workers=self.config.workers, thread_name_prefix="nestad") as executor:
            futures = [
                executor.submit(self._scan_root_in_time, root, index, total)
                for index, root in enumerate(groups, 1)
            ]
            return [future.result() for future in futures]

    def _scan_root_in_time(self, root: GroupId, index: int, total: int) -> Optional[tuple]:
        """(records, complete) for root, or None when the global timeout has
        already passed. complete is False if expansion stopped at the deadline."""
        if self._out_of_time():
            return None
        self._log(f"[*] [{index}/{total}] {self.source.get_group_name(root)}")
        self._root_state.truncated = False
        records = self.scan_root(root)
        return records, not self._root_state.truncated

    def _out_of_time(self) -> bool:
        if self._stopped.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._stopped.set()
            self._log(f"[!] Scan timeout of {self.config.timeout}s reached, stopping", always=True)
            return True
        return False

    def _report(self, record: AnomalyRecord, found: list) -> None:
        """Record a structural anomaly and surface it immediately."""
        found.append(record)
        chain = format_path(record.path, self.source.get_group_name)
        if isinstance(record, CircularNesting):
            self._log(f"[!] Circular nesting: {chain}", always=True)
        else:
            self._log(f"[!] Nesting depth over {record.limit}: {chain}", always=True)
