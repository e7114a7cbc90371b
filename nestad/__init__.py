"""
nestAD - Active Directory Group Nesting Analyzer
================================================

A read-only scanner for the security-group containment graph of a directory
service. It detects two structural hazards:

- Circular nesting: a group that, through a chain of "group contains group"
  memberships, ends up containing itself
- Excessive nesting depth: containment chains longer than a configurable bound

Architecture Overview:
----------------------
- ingestion/: Directory sources (live LDAP, BloodHound JSON, in-memory graph)
- model/: Group containment graph, anomaly records and error taxonomy
- analysis/: Depth/cycle-aware nesting walker and result summarizer
- reporting/: CSV/JSON/text report generation

Design Decisions:
-----------------
1. NetworkX is used as the in-memory graph backend for offline sources
2. All data models use Python dataclasses; anomaly records are immutable
3. The directory is never modified - every operation is a read
"""

__version__ = "1.0.0"
__author__ = "nestAD Research Team"

from .config import NestadConfig
