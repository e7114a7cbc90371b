"""
nestAD Model Module
===================

Contains the core data models and graph representation.

Key Components:
- schemas.py: Anomaly records and the scan result container
- errors.py: Directory error taxonomy (fatal vs per-group)
- graph_builder.py: NetworkX-based group containment graph

Design Philosophy:
- Anomaly records are immutable value objects
- The graph abstraction backs every offline directory source
"""

from .schemas import (
    GroupId,
    NodeType,
    AnomalyKind,
    AnomalyRecord,
    CircularNesting,
    DepthExceeded,
    LookupFailure,
    ScanResult,
    format_path
)
from .errors import (
    DirectoryError,
    DirectoryUnavailable,
    DirectoryLookupError,
    GroupNotFound,
    AccessDenied,
    DirectoryTransientError
)
from .graph_builder import ADGraph
