"""Unit tests for the group nesting analyzer."""

import time
from collections import Counter

import pytest

from nestad.analysis.nesting_analyzer import NestingAnalyzer
from nestad.config import AnalysisConfig
from nestad.ingestion.source import GraphDirectorySource
from nestad.model.errors import DirectoryUnavailable, GroupNotFound, AccessDenied
from nestad.model.graph_builder import ADGraph
from nestad.model.schemas import (
    CircularNesting, DepthExceeded, LookupFailure, NodeType
)


def analyzer_for(source, max_depth=5, workers=1, timeout=None, callback=None):
    config = AnalysisConfig(max_depth=max_depth, workers=workers, timeout=timeout)
    return NestingAnalyzer(source, config, verbose=False, progress_callback=callback)


class TestStructuralDetection:
    """Cycle and depth detection from a single root."""

    def test_clean_graph_has_no_structural_anomalies(self, make_source):
        source = make_source([("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")])
        result = analyzer_for(source, max_depth=5).run()
        assert result.circular_nesting == []
        assert result.depth_exceeded == []
        assert result.lookup_failures == []

    def test_three_group_cycle_reported_once_from_root(self, make_source):
        source = make_source([("A", "B"), ("B", "C"), ("C", "A")])
        records = analyzer_for(source).scan_root("A")
        assert records == [CircularNesting(("A", "B", "C", "A"))]
        # A is detected again without a second lookup
        assert source.lookups == ["A", "B", "C"]

    def test_linear_chain_stops_at_depth_limit(self, make_source):
        source = make_source([("A", "B"), ("B", "C"), ("C", "D"), ("D", "E")])
        records = analyzer_for(source, max_depth=3).scan_root("A")
        assert records == [DepthExceeded(("A", "B", "C", "D"), limit=3)]
        assert "D" not in source.lookups
        assert "E" not in source.lookups

    def test_chain_exactly_at_limit_is_clean(self, make_source):
        source = make_source([("A", "B"), ("B", "C")])
        assert analyzer_for(source, max_depth=3).scan_root("A") == []

    def test_cycle_takes_precedence_over_depth(self, make_source):
        source = make_source([("A", "B"), ("B", "A")])
        records = analyzer_for(source, max_depth=2).scan_root("A")
        assert records == [CircularNesting(("A", "B", "A"))]

    def test_self_membership_is_a_cycle(self, make_source):
        source = make_source([("A", "A")])
        records = analyzer_for(source).scan_root("A")
        assert records == [CircularNesting(("A", "A"))]
        assert records[0].cycle == ("A", "A")

    def test_depth_limit_of_one(self, make_source):
        source = make_source([("A", "B")])
        records = analyzer_for(source, max_depth=1).scan_root("A")
        assert records == [DepthExceeded(("A", "B"), limit=1)]

    def test_non_group_members_are_not_expanded(self, make_source):
        source = make_source([("A", "B"), ("A", "alice")], users=["alice"])
        assert analyzer_for(source).scan_root("A") == []
        assert source.lookups == ["A", "B"]

    def test_cycle_record_exposes_loop(self, make_source):
        source = make_source([("R", "A"), ("A", "B"), ("B", "A")])
        records = analyzer_for(source).scan_root("R")
        assert records == [CircularNesting(("R", "A", "B", "A"))]
        assert records[0].cycle == ("A", "B", "A")
        assert records[0].group_id == "A"


class TestBranchIsolation:
    """Sibling branches never share visited state."""

    def test_shared_child_is_not_a_cycle(self, make_source):
        source = make_source([("P", "B"), ("P", "C"), ("B", "X"), ("C", "X")])
        records = analyzer_for(source).scan_root("P")
        assert records == []
        assert source.lookups.count("X") == 2

    def test_sibling_cycle_does_not_leak_into_other_sibling(self, make_source):
        # B's branch loops through G; C reaches G independently and must see
        # the real cycle G -> B -> G, not a premature hit on G
        source = make_source([("P", "B"), ("P", "C"), ("B", "G"), ("G", "B"), ("C", "G")])
        records = analyzer_for(source).scan_root("P")
        assert records == [
            CircularNesting(("P", "B", "G", "B")),
            CircularNesting(("P", "C", "G", "B", "G")),
        ]
        assert CircularNesting(("P", "C", "G")) not in records

    def test_explore_does_not_mutate_caller_state(self, make_source):
        source = make_source([("A", "B")])
        visited = frozenset({"Z"})
        path = ("Z",)
        found = []
        analyzer_for(source).explore("A", visited, path, 5, found)
        assert visited == frozenset({"Z"})
        assert path == ("Z",)
        assert found == []


class TestLookupFailures:
    """Per-group directory errors become records, never abort the scan."""

    def test_failed_lookup_yields_single_record_and_siblings_continue(self, make_source):
        source = make_source(
            [("A", "B"), ("A", "C"), ("C", "D")],
            failures={"B": GroupNotFound("B", "no such object")}
        )
        records = analyzer_for(source).scan_root("A")
        assert records == [LookupFailure(("A", "B"), error_detail="GroupNotFound: no such object")]
        assert records[0].group_id == "B"
        assert "C" in source.lookups
        assert "D" in source.lookups

    def test_failed_lookup_does_not_stop_other_roots(self, make_source):
        source = make_source(
            [("A", "B"), ("C", "D")],
            failures={"B": AccessDenied("B", "insufficientAccessRights")}
        )
        result = analyzer_for(source).run()
        assert result.roots_scanned == 4
        # B fails from root A and as its own root
        assert [f.path for f in result.lookup_failures] == [("A", "B"), ("B",)]
        assert all(f.error_detail.startswith("AccessDenied:") for f in result.lookup_failures)
        assert "D" in source.lookups

    def test_unexpected_exception_is_contained(self, make_source):
        source = make_source([("A", "B")], failures={"B": RuntimeError("socket reset")})
        records = analyzer_for(source).scan_root("A")
        assert records == [LookupFailure(("A", "B"), error_detail="RuntimeError: socket reset")]

    def test_group_without_record_is_reported_not_found(self):
        graph = ADGraph()
        graph.add_group("A")
        graph.add_membership("A", "S-1-5-21-9-1234", NodeType.GROUP)
        records = analyzer_for(GraphDirectorySource(graph)).scan_root("A")
        assert len(records) == 1
        assert records[0].path == ("A", "S-1-5-21-9-1234")
        assert records[0].error_detail.startswith("GroupNotFound:")

    def test_catalog_failure_is_fatal(self):
        class BrokenSource(GraphDirectorySource):
            def list_all_groups(self):
                raise DirectoryUnavailable("server down")

        with pytest.raises(DirectoryUnavailable):
            analyzer_for(BrokenSource(ADGraph())).run()


class TestDriver:
    """Top-level run over every group."""

    def test_every_group_is_a_root_exactly_once(self, make_source):
        source = make_source([("A", "B"), ("B", "C"), ("C", "A"), ("D", "E")], groups=["F"])
        analyzer = analyzer_for(source)
        roots = []
        original = analyzer.scan_root

        def spy(root):
            roots.append(root)
            return original(root)

        analyzer.scan_root = spy
        result = analyzer.run()
        assert sorted(roots) == ["A", "B", "C", "D", "E", "F"]
        assert result.roots_scanned == result.total_groups == 6

    def test_cycle_reported_from_every_member_root(self, make_source):
        source = make_source([("A", "B"), ("B", "C"), ("C", "A")])
        result = analyzer_for(source).run()
        assert [r.path for r in result.circular_nesting] == [
            ("A", "B", "C", "A"),
            ("B", "C", "A", "B"),
            ("C", "A", "B", "C"),
        ]

    def test_runs_are_idempotent(self, make_source):
        edges = [("A", "B"), ("B", "C"), ("C", "A"), ("C", "D"), ("D", "E"), ("E", "F")]
        source = make_source(edges, failures={"F": GroupNotFound("F", "gone")})
        analyzer = analyzer_for(source, max_depth=3)
        first = Counter(analyzer.run().anomalies)
        second = Counter(analyzer.run().anomalies)
        assert first == second
        assert sum(first.values()) > 0

    def test_parallel_workers_match_sequential(self, make_source):
        edges = [("A", "B"), ("B", "C"), ("C", "A"), ("C", "D"), ("D", "E"), ("E", "F"), ("G", "H")]
        sequential = analyzer_for(make_source(edges), max_depth=3).run()
        parallel = analyzer_for(make_source(edges), max_depth=3, workers=4).run()
        assert parallel.anomalies == sequential.anomalies
        assert parallel.roots_scanned == sequential.roots_scanned

    def test_structural_warnings_are_immediate(self, make_source):
        messages = []
        source = make_source([("A", "B"), ("B", "A"), ("B", "C")], failures={"C": GroupNotFound("C", "gone")})
        analyzer_for(source, callback=messages.append).scan_root("A")
        warnings = [m for m in messages if m.startswith("[!]")]
        assert warnings == ["[!] Circular nesting: A-name -> B-name -> A-name"]

    def test_timeout_keeps_recorded_anomalies(self, make_graph):
        class SlowSource(GraphDirectorySource):
            def list_child_groups(self, group_id):
                time.sleep(0.05)
                return super().list_child_groups(group_id)

        graph = make_graph([("A", "A")], groups=["A", "B", "C"])
        result = analyzer_for(SlowSource(graph), timeout=0.01).run()
        assert result.timed_out
        assert result.circular_nesting == [CircularNesting(("A", "A"))]
        assert result.roots_scanned == 1
        assert result.roots_incomplete == 0
        assert result.total_groups == 3

    def test_root_cut_short_by_timeout_is_not_counted_as_scanned(self, make_graph):
        class SlowSource(GraphDirectorySource):
            def list_child_groups(self, group_id):
                time.sleep(0.05)
                return super().list_child_groups(group_id)

        graph = make_graph([("A", "B"), ("B", "C")])
        result = analyzer_for(SlowSource(graph), timeout=0.01).run()
        assert result.timed_out
        assert result.roots_scanned == 0
        assert result.roots_incomplete == 1
        assert result.total_groups == 3

    def test_result_metadata(self, make_source):
        result = analyzer_for(make_source([("A", "B")]), max_depth=4).run()
        assert result.max_depth == 4
        assert result.started_at and result.finished_at
        assert result.metadata['workers'] == 1
        assert not result.timed_out
