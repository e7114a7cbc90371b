"""Shared fixtures for the nestAD test suite."""

import pytest

from nestad.model.graph_builder import ADGraph
from nestad.model.schemas import NodeType
from nestad.ingestion.source import GraphDirectorySource


def build_graph(edges, groups=None, users=None) -> ADGraph:
    """Build a containment graph from (parent, child) pairs.

    Every endpoint is a group unless listed in users. groups adds groups
    without edges; ids in neither list but typed as groups keep their record.
    """
    users = set(users or [])
    graph = ADGraph()
    ordered = list(groups or [])
    for parent, child in edges:
        for group_id in (parent, child):
            if group_id not in users and group_id not in ordered:
                ordered.append(group_id)
    for group_id in ordered:
        graph.add_group(group_id, name=f"{group_id}-name")
    for user_id in users:
        graph.add_principal(user_id, NodeType.USER)
    for parent, child in edges:
        child_type = NodeType.USER if child in users else NodeType.GROUP
        graph.add_membership(parent, child, child_type)
    return graph


class RecordingSource(GraphDirectorySource):
    """Graph source that records every child lookup and can inject failures."""

    def __init__(self, graph, failures=None):
        super().__init__(graph)
        self.failures = failures or {}
        self.lookups = []

    def list_child_groups(self, group_id):
        self.lookups.append(group_id)
        if group_id in self.failures:
            raise self.failures[group_id]
        return super().list_child_groups(group_id)


@pytest.fixture
def make_graph():
    return build_graph


@pytest.fixture
def make_source():
    def factory(edges, groups=None, users=None, failures=None):
        return RecordingSource(build_graph(edges, groups, users), failures)
    return factory
