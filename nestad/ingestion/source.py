"""
Directory Source Interface
==========================

The narrow capability the analyzer needs from a directory service:

- list_all_groups(): every group identifier in the catalog
- list_child_groups(group_id): direct members of a group that are groups

Implementations:
- GraphDirectorySource: in-memory, backed by an ADGraph (BloodHound exports,
  JSON fixtures, tests)
- LDAPDirectorySource (ldap_loader.py): live, read-only ldap3 queries

Security Consideration:
Sources only read. No implementation modifies directory state.
"""

from abc import ABC, abstractmethod

from ..model.errors import GroupNotFound
from ..model.graph_builder import ADGraph
from ..model.schemas import GroupId


class DirectorySource(ABC):
    """Read-only access to the group containment graph of a directory."""

    @abstractmethod
    def list_all_groups(self) -> list[GroupId]:
        """Enumerate every group in the directory.

        Raises:
            DirectoryUnavailable: if the catalog cannot be listed
        """

    @abstractmethod
    def list_child_groups(self, group_id: GroupId) -> list[GroupId]:
        """Return the direct members of group_id whose type is group.

        Raises:
            GroupNotFound, AccessDenied, DirectoryTransientError
        """

    def get_group_name(self, group_id: GroupId) -> str:
        """Display name for a group. Never hits the network."""
        return group_id

    def describe(self) -> str:
        """Short description of the source for logs and report metadata."""
        return self.__class__.__name__

    def close(self) -> None:
        """Release any held resources."""


class GraphDirectorySource(DirectorySource):
    """Directory source over an in-memory ADGraph.

    Usage:
        graph = BloodHoundLoader().load_files(["groups.json"])
        source = GraphDirectorySource(graph)
        source.list_child_groups(source.list_all_groups()[0])
    """

    def __init__(self, graph: ADGraph, label: str = "in-memory graph"):
        self.graph = graph
        self.label = label

    def list_all_groups(self) -> list[GroupId]:
        return self.graph.get_group_ids()

    def list_child_groups(self, group_id: GroupId) -> list[GroupId]:
        if not self.graph.has_group(group_id):
            raise GroupNotFound(group_id, f"No group record for {group_id}")
        return self.graph.get_child_group_ids(group_id)

    def get_group_name(self, group_id: GroupId) -> str:
        return self.graph.get_node_name(group_id)

    def describe(self) -> str:
        return f"{self.label} ({self.graph.group_count} groups, {self.graph.edge_count} memberships)"
