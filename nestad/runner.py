"""
Scan Runner
===========

High-level entry point that wires the pipeline together:
1. Directory source selection (LDAP, BloodHound files or a graph fixture)
2. Nesting analysis over every group
3. Report generation

Design Decisions:
-----------------
1. Single entry point (run_scan) shared by the CLI and library callers
2. Returns a ScanResult that carries everything the caller needs
3. Only DirectoryUnavailable escapes: the catalog could not be obtained
4. Progress updates via callback for real-time display
"""

import json
import zipfile
from pathlib import Path
from typing import Optional, Callable

from .config import NestadConfig
from .ingestion.source import DirectorySource, GraphDirectorySource
from .ingestion.bloodhound_loader import BloodHoundLoader
from .ingestion.ldap_loader import LDAPDirectorySource
from .model.errors import DirectoryUnavailable
from .model.graph_builder import ADGraph
from .model.schemas import ScanResult
from .analysis.nesting_analyzer import NestingAnalyzer
from .reporting.report_builder import ReportBuilder


def load_graph_file(graph_file: str) -> ADGraph:
    """Load an ADGraph fixture written by ADGraph.to_dict()."""
    with open(graph_file, 'r', encoding='utf-8') as f:
        return ADGraph.from_dict(json.load(f))


def build_source(
    username: Optional[str] = None,
    password: Optional[str] = None,
    ntlm_hash: Optional[str] = None,
    domain: Optional[str] = None,
    server_ip: Optional[str] = None,
    input_files: Optional[list[str]] = None,
    graph_file: Optional[str] = None,
    config: Optional[NestadConfig] = None,
    log: Callable[[str], None] = print
) -> DirectorySource:
    """Create the directory source for the given inputs.

    Raises:
        ValueError: if no input (or more than one kind of input) is given
        DirectoryUnavailable: if the source cannot be opened
    """
    config = config or NestadConfig()

    has_ldap = bool(domain and server_ip)
    has_files = bool(input_files)
    has_graph = bool(graph_file)

    if has_ldap + has_files + has_graph != 1:
        raise ValueError("Provide exactly one input: LDAP server and domain, BloodHound files, or a graph file")

    if has_ldap:
        log(f"[*] Target: {server_ip}")
        log(f"[*] Domain: {domain}")
        source = LDAPDirectorySource(
            server_ip=server_ip,
            domain=domain,
            username=username,
            password=password,
            ntlm_hash=ntlm_hash,
            config=config.ldap,
            verbose=False,
            progress_callback=log
        )
        source.connect()
        return source

    if has_files:
        loader = BloodHoundLoader(progress_callback=log)
        try:
            graph = loader.load_files(input_files)
        except (OSError, ValueError, zipfile.BadZipFile) as e:
            raise DirectoryUnavailable(f"Could not load BloodHound data: {e}") from e
        label = ", ".join(Path(f).name for f in input_files)
        return GraphDirectorySource(graph, label=f"BloodHound {label}")

    try:
        graph = load_graph_file(graph_file)
    except (OSError, ValueError, KeyError) as e:
        raise DirectoryUnavailable(f"Could not load graph file {graph_file}: {e}") from e
    return GraphDirectorySource(graph, label=f"graph {Path(graph_file).name}")


def run_scan(
    username: Optional[str] = None,
    password: Optional[str] = None,
    ntlm_hash: Optional[str] = None,
    domain: Optional[str] = None,
    server_ip: Optional[str] = None,
    input_files: Optional[list[str]] = None,
    graph_file: Optional[str] = None,
    source: Optional[DirectorySource] = None,
    output_dir: Optional[str] = None,
    config: Optional[dict] = None,
    progress_callback: Optional[Callable[[str], None]] = None
) -> ScanResult:
    """Main entry point for a nesting scan.

    Args:
        username: Domain username for LDAP
        password: Domain password for LDAP
        ntlm_hash: NTLM hash for Pass-the-Hash
        domain: Domain name (e.g., "corp.local")
        server_ip: Domain controller IP address
        input_files: BloodHound JSON/zip files (offline scan)
        graph_file: ADGraph JSON fixture (offline scan)
        source: Ready-made directory source (overrides the inputs above)
        output_dir: Directory for output files (overrides config)
        config: Optional configuration dictionary (see NestadConfig.from_dict)
        progress_callback: Optional callback for progress updates

    Returns:
        ScanResult with every anomaly and report paths

    Raises:
        DirectoryUnavailable: if the group catalog cannot be obtained

    Example:
        result = run_scan(
            username="auditor",
            password="Password123",
            domain="corp.local",
            server_ip="192.168.1.100",
            config={"analysis": {"max_depth": 4}}
        )
    """
    nestad_config = NestadConfig.from_dict(config or {})
    if output_dir:
        nestad_config.output.output_dir = output_dir

    def log(message: str):
        """Log message to console and callback."""
        if progress_callback:
            progress_callback(message)
        if nestad_config.verbose:
            print(message)

    if source is None:
        source = build_source(
            username=username,
            password=password,
            ntlm_hash=ntlm_hash,
            domain=domain,
            server_ip=server_ip,
            input_files=input_files,
            graph_file=graph_file,
            config=nestad_config,
            log=log
        )

    try:
        analyzer = NestingAnalyzer(
            source,
            config=nestad_config.analysis,
            verbose=nestad_config.verbose,
            progress_callback=progress_callback
        )
        result = analyzer.run()

        builder = ReportBuilder(
            name_of=source.get_group_name,
            config=nestad_config.output,
            verbose=nestad_config.verbose,
            progress_callback=progress_callback
        )
        builder.build_report(result)
    finally:
        source.close()

    return result
