"""
nestAD Graph Builder
====================

NetworkX-based representation of a group containment graph.

Design Decisions:
-----------------
1. Uses NetworkX DiGraph as the underlying data structure
2. Edge direction is parent -> child: the child is a direct member of the parent
3. Non-group members are kept as typed nodes so sources can filter them
4. Group insertion order is preserved so enumeration is deterministic

The graph backs every offline directory source (BloodHound exports, JSON
fixtures, test graphs). Live LDAP scans never build one.
"""

import networkx as nx
from typing import Iterator, Optional

from .schemas import GroupId, NodeType


class ADGraph:
    """Abstraction layer over NetworkX for group containment operations.

    Example Usage:
        graph = ADGraph()
        graph.add_group("S-1-5-21-1-512", name="Domain Admins")
        graph.add_group("S-1-5-21-1-1105", name="Tier0 Operators")
        graph.add_membership("S-1-5-21-1-512", "S-1-5-21-1-1105", NodeType.GROUP)

        children = graph.get_child_group_ids("S-1-5-21-1-512")
    """

    def __init__(self):
        """Initialize empty containment graph."""
        self._graph = nx.DiGraph()

        # Ids of nodes that carry a full group record, in insertion order
        self._groups: dict[str, None] = {}

    @property
    def nx_graph(self) -> nx.DiGraph:
        """Access underlying NetworkX graph for advanced operations."""
        return self._graph

    def add_group(
        self,
        group_id: GroupId,
        name: Optional[str] = None,
        domain: Optional[str] = None,
        distinguished_name: Optional[str] = None,
        **properties
    ) -> None:
        """Add (or update) a group record.

        Args:
            group_id: Directory-unique group identifier
            name: Display name (defaults to the id)
            domain: Domain the group belongs to
            distinguished_name: Full LDAP DN if known
        """
        self._graph.add_node(
            group_id,
            node_type=NodeType.GROUP,
            name=name or group_id,
            domain=domain,
            distinguished_name=distinguished_name,
            is_group_record=True,
            **properties
        )
        self._groups.setdefault(group_id, None)

    def add_principal(
        self,
        object_id: str,
        node_type: NodeType,
        name: Optional[str] = None,
        **properties
    ) -> None:
        """Add a non-group principal (user, computer, ...).

        Existing group records are never downgraded.
        """
        if object_id in self._groups:
            return
        self._graph.add_node(
            object_id,
            node_type=node_type,
            name=name or object_id,
            **properties
        )

    def add_membership(
        self,
        parent_id: GroupId,
        child_id: str,
        child_type: NodeType = NodeType.UNKNOWN
    ) -> None:
        """Record that child_id is a direct member of parent_id.

        Args:
            parent_id: Containing group
            child_id: Member object
            child_type: Member object type, used when the child is not yet known

        Note:
            Missing endpoints are created without a group record. A child typed
            as GROUP but never added through add_group is an unresolvable group.
        """
        if not self._graph.has_node(parent_id):
            self._graph.add_node(parent_id, node_type=NodeType.GROUP, name=parent_id)

        if not self._graph.has_node(child_id):
            self._graph.add_node(child_id, node_type=child_type, name=child_id)
        elif child_type != NodeType.UNKNOWN and self._graph.nodes[child_id].get('node_type') == NodeType.UNKNOWN:
            self._graph.nodes[child_id]['node_type'] = child_type

        self._graph.add_edge(parent_id, child_id)

    def has_group(self, group_id: GroupId) -> bool:
        """Whether a full group record exists for group_id."""
        return group_id in self._groups

    def get_group(self, group_id: GroupId) -> Optional[dict]:
        """Get the attribute dict of a group record, or None."""
        if not self.has_group(group_id):
            return None
        return dict(self._graph.nodes[group_id])

    def get_node_type(self, object_id: str) -> NodeType:
        """Get the type of any node (UNKNOWN if absent)."""
        if not self._graph.has_node(object_id):
            return NodeType.UNKNOWN
        return self._graph.nodes[object_id].get('node_type', NodeType.UNKNOWN)

    def get_group_ids(self) -> list[GroupId]:
        """All group ids with a full record, in insertion order."""
        return list(self._groups)

    def get_member_ids(self, group_id: GroupId) -> Iterator[str]:
        """Direct members of a group, of any type."""
        if self._graph.has_node(group_id):
            yield from self._graph.successors(group_id)

    def get_child_group_ids(self, group_id: GroupId) -> list[GroupId]:
        """Direct members of a group whose type is GROUP."""
        return [
            member_id for member_id in self.get_member_ids(group_id)
            if self.get_node_type(member_id) == NodeType.GROUP
        ]

    def get_node_name(self, object_id: str) -> str:
        """Get the display name for a node.

        Returns:
            Human-readable name or the object_id if name not available
        """
        if self._graph.has_node(object_id):
            return self._graph.nodes[object_id].get('name') or object_id
        return object_id

    def find_cycles(self) -> list[list[GroupId]]:
        """Elementary cycles of the group-only containment subgraph.

        Each cycle is returned as a list of group ids without the repeated
        closing node, e.g. ["A", "B", "C"] for A -> B -> C -> A.
        """
        group_nodes = [
            n for n, attrs in self._graph.nodes(data=True)
            if attrs.get('node_type') == NodeType.GROUP
        ]
        return [list(cycle) for cycle in nx.simple_cycles(self._graph.subgraph(group_nodes))]

    @property
    def node_count(self) -> int:
        """Total number of nodes in the graph."""
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        """Total number of membership edges in the graph."""
        return self._graph.number_of_edges()

    @property
    def group_count(self) -> int:
        """Number of groups with a full record."""
        return len(self._groups)

    def clear(self) -> None:
        """Clear all nodes and edges from the graph."""
        self._graph.clear()
        self._groups.clear()

    def merge(self, other: "ADGraph") -> None:
        """Merge another graph into this one.

        Args:
            other: Another ADGraph to merge

        Note:
            Group records from 'other' overwrite attributes of existing nodes.
        """
        for node_id, attrs in other._graph.nodes(data=True):
            attrs = dict(attrs)
            if attrs.pop('is_group_record', False):
                attrs.pop('node_type', None)
                self.add_group(node_id, **attrs)
            elif not self._graph.has_node(node_id):
                self._graph.add_node(node_id, **attrs)

        for parent_id, child_id in other._graph.edges():
            self.add_membership(parent_id, child_id, other.get_node_type(child_id))

    def to_dict(self) -> dict:
        """Convert graph to dictionary for serialization.

        Returns:
            Dictionary with 'groups', 'principals' and 'memberships' keys
        """
        groups = []
        principals = []
        for node_id, attrs in self._graph.nodes(data=True):
            entry = {
                "object_id": node_id,
                "name": attrs.get('name', node_id),
                "node_type": attrs.get('node_type', NodeType.UNKNOWN).value,
            }
            if node_id in self._groups:
                entry["domain"] = attrs.get('domain')
                entry["distinguished_name"] = attrs.get('distinguished_name')
                groups.append(entry)
            else:
                principals.append(entry)

        memberships = [
            {"parent_id": parent_id, "child_id": child_id}
            for parent_id, child_id in self._graph.edges()
        ]

        return {"groups": groups, "principals": principals, "memberships": memberships}

    @classmethod
    def from_dict(cls, data: dict) -> "ADGraph":
        """Rebuild a graph from to_dict() output (or a hand-written fixture).

        Memberships may omit principals; unknown children are typed by the
        optional "child_type" key of the membership entry.
        """
        graph = cls()

        for group in data.get('groups', []):
            graph.add_group(
                group['object_id'],
                name=group.get('name'),
                domain=group.get('domain'),
                distinguished_name=group.get('distinguished_name')
            )

        for principal in data.get('principals', []):
            graph.add_principal(
                principal['object_id'],
                NodeType.from_string(principal.get('node_type')),
                name=principal.get('name')
            )

        for membership in data.get('memberships', []):
            graph.add_membership(
                membership['parent_id'],
                membership['child_id'],
                NodeType.from_string(membership.get('child_type'))
            )

        return graph
