"""
nestAD Data Schemas
===================

Typed dataclasses for the group containment graph and the anomalies the
analyzer reports.

Schema Hierarchy:
- NodeType: object classes that can appear as group members
- AnomalyRecord (base, immutable)
  - CircularNesting
  - DepthExceeded
  - LookupFailure
- ScanResult: complete output of one scan run
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional


# Opaque, directory-unique group identifier (SID, DN or BloodHound object id)
GroupId = str

DEFAULT_PATH_SEPARATOR = " -> "


class NodeType(Enum):
    """Types of directory objects that can be group members.
    
    Maps to BloodHound ObjectType values for compatibility.
    """
    GROUP = "Group"
    USER = "User"
    COMPUTER = "Computer"
    UNKNOWN = "Unknown"
    
    @classmethod
    def from_string(cls, s: Optional[str]) -> "NodeType":
        """Convert a BloodHound/LDAP type string to NodeType."""
        if not s:
            return cls.UNKNOWN
        normalized = s.strip().lower()
        for node_type in cls:
            if node_type.value.lower() == normalized:
                return node_type
        return cls.UNKNOWN


class AnomalyKind(Enum):
    """Kinds of anomalies produced during traversal."""
    CIRCULAR_NESTING = "CircularNesting"
    DEPTH_EXCEEDED = "DepthExceeded"
    LOOKUP_FAILURE = "LookupFailure"


def format_path(
    path,
    name_of: Optional[Callable[[str], str]] = None,
    separator: str = DEFAULT_PATH_SEPARATOR
) -> str:
    """Render a containment chain as a human-readable string.
    
    Args:
        path: Ordered sequence of group ids
        name_of: Optional id -> display name resolver
        separator: Arrow placed between consecutive groups
    """
    if name_of is None:
        return separator.join(path)
    return separator.join(name_of(group_id) for group_id in path)


@dataclass(frozen=True)
class AnomalyRecord:
    """Base class for anomaly records.
    
    Records are created once during traversal and never mutated. The path
    always ends with the group at which the anomaly was detected.
    """
    path: tuple
    
    @property
    def kind(self) -> AnomalyKind:
        raise NotImplementedError
    
    @property
    def group_id(self) -> GroupId:
        return self.path[-1]
    
    @property
    def depth(self) -> int:
        """Number of containment edges from the scan root."""
        return len(self.path) - 1
    
    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind.value,
            "group_id": self.group_id,
            "path": list(self.path),
        }


@dataclass(frozen=True)
class CircularNesting(AnomalyRecord):
    """The containment chain returned to a group already on the path."""
    
    @property
    def kind(self) -> AnomalyKind:
        return AnomalyKind.CIRCULAR_NESTING
    
    @property
    def cycle(self) -> tuple:
        """The looping portion of the path, e.g. (A, B, C, A)."""
        start = self.path.index(self.group_id)
        return self.path[start:]


@dataclass(frozen=True)
class DepthExceeded(AnomalyRecord):
    """The chain reached the configured depth limit.
    
    Attributes:
        limit: The max_depth that was in force
    """
    limit: int = 0
    
    @property
    def kind(self) -> AnomalyKind:
        return AnomalyKind.DEPTH_EXCEEDED
    
    def to_dict(self) -> dict:
        data = super().to_dict()
        data["limit"] = self.limit
        return data


@dataclass(frozen=True)
class LookupFailure(AnomalyRecord):
    """The directory could not resolve a group's child groups.
    
    The failing group is the last element of the path.

    Attributes:
        error_detail: "<ErrorClass>: <message>"
    """
    error_detail: str = ""

    @property
    def kind(self) -> AnomalyKind:
        return AnomalyKind.LOOKUP_FAILURE

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["error_detail"] = self.error_detail
        return data


@dataclass
class ScanResult:
    """Complete result of one scan run.
    
    Attributes:
        circular_nesting: CircularNesting records in detection order
        depth_exceeded: DepthExceeded records in detection order
        lookup_failures: LookupFailure records in detection order
        total_groups: Number of groups returned by the directory
        roots_scanned: Number of roots explored to completion
        roots_incomplete: Roots cut short by the global timeout (anomalies kept)
        max_depth: Depth limit used for the run
        timed_out: Whether the global timeout cut the run short
        started_at: ISO timestamp of the scan start
        finished_at: ISO timestamp of the scan end
        failures_report_path: CSV file with lookup failures (None if all clear)
        report_path: JSON scan report
        metadata: Additional metadata (source description, etc.)
    """
    circular_nesting: list = field(default_factory=list)
    depth_exceeded: list = field(default_factory=list)
    lookup_failures: list = field(default_factory=list)
    total_groups: int = 0
    roots_scanned: int = 0
    roots_incomplete: int = 0
    max_depth: int = 0
    timed_out: bool = False
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    failures_report_path: Optional[str] = None
    report_path: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    
    def add(self, record: AnomalyRecord) -> None:
        """File a record under its kind."""
        if isinstance(record, CircularNesting):
            self.circular_nesting.append(record)
        elif isinstance(record, DepthExceeded):
            self.depth_exceeded.append(record)
        elif isinstance(record, LookupFailure):
            self.lookup_failures.append(record)
        else:
            raise TypeError(f"Unsupported anomaly record: {record!r}")
    
    @property
    def anomalies(self) -> list:
        """All records, cycles first."""
        return self.circular_nesting + self.depth_exceeded + self.lookup_failures
    
    @property
    def cycle_count(self) -> int:
        return len(self.circular_nesting)
    
    @property
    def depth_count(self) -> int:
        return len(self.depth_exceeded)
    
    @property
    def failure_count(self) -> int:
        return len(self.lookup_failures)
    
    @property
    def has_structural_issues(self) -> bool:
        return bool(self.circular_nesting or self.depth_exceeded)
    
    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "circular_nesting": [r.to_dict() for r in self.circular_nesting],
            "depth_exceeded": [r.to_dict() for r in self.depth_exceeded],
            "lookup_failures": [r.to_dict() for r in self.lookup_failures],
            "total_groups": self.total_groups,
            "roots_scanned": self.roots_scanned,
            "roots_incomplete": self.roots_incomplete,
            "max_depth": self.max_depth,
            "timed_out": self.timed_out,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "failures_report_path": self.failures_report_path,
            "report_path": self.report_path,
            "metadata": self.metadata
        }
