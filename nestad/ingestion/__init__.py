"""
nestAD Ingestion Module
=======================

Directory sources for the nesting analyzer.

Supported Sources:
- LDAP live queries (using ldap3)
- BloodHound/SharpHound JSON exports (loaded into an ADGraph)
- In-memory ADGraph fixtures

Design Philosophy:
- The analyzer only sees the DirectorySource interface
- Sources are read-only; lookups are never cached across groups
"""

from .source import DirectorySource, GraphDirectorySource
from .bloodhound_loader import BloodHoundLoader
from .ldap_loader import LDAPDirectorySource, LDAP3_AVAILABLE
