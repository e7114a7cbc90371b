"""
nestAD Analysis Module
======================

Group nesting analysis.

Components:
- nesting_analyzer.py: Recursive cycle/depth-aware containment walker and driver
- summarizer.py: Post-scan statistics and distinct-cycle aggregation

Design Philosophy:
- Deterministic: the same graph always yields the same multiset of records
- No anomaly, and no per-group lookup error, stops the scan
"""

from .nesting_analyzer import NestingAnalyzer
from .summarizer import NestingSummarizer, cycle_signature
