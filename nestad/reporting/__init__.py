"""
nestAD Reporting Module
=======================

Report generation for scan results.

Components:
- report_builder.py: CSV failure report, JSON scan report, text summary

Design Philosophy:
- Reports are structured data that can be rendered multiple ways
- A run without lookup failures produces a summary, not an empty file
"""

from .report_builder import ReportBuilder, generate_text_report
