#!/usr/bin/env python3
"""
nestAD - Active Directory Group Nesting Analyzer
================================================

Command-line interface for scanning group nesting.

Usage:
    # Live scan over LDAP
    nestad -u auditor -p Password123 -d corp.local -s 192.168.1.100

    # Offline scan of a SharpHound collection
    nestad -b 20240101_groups.json 20240101_users.json

    # Stricter depth limit, 8 parallel workers
    nestad -d corp.local -s 192.168.1.100 -u auditor --max-depth 3 --workers 8

Options:
    --username, -u      Domain username
    --password, -p      Domain password (or NESTAD_PASSWORD)
    --ntlm-hash         NTLM hash for Pass-the-Hash authentication
    --domain, -d        Domain name (e.g., corp.local)
    --server, -s        Domain controller IP address
    --bloodhound, -b    BloodHound/SharpHound JSON or zip files
    --graph             Graph JSON fixture
    --max-depth         Maximum nesting depth (default: 5)
    --output, -o        Output directory (default: ./output)
    --verbose, -v       Verbose output

Exit Codes:
    0   Scan completed (with or without findings)
    1   The group catalog could not be obtained
"""

import argparse
import sys

from . import __version__
from .config import DEFAULT_MAX_DEPTH, NestadConfig, password_from_env
from .model.errors import DirectoryUnavailable
from .reporting.report_builder import generate_text_report
from .runner import build_source, run_scan


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="nestad",
        description="nestAD - Active Directory Group Nesting Analyzer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Live scan
  %(prog)s -u auditor -p Password123 -d corp.local -s 192.168.1.100

  # Offline scan of a SharpHound zip
  %(prog)s -b 20240101_BloodHound.zip

  # Custom depth limit and output directory
  %(prog)s -b groups.json --max-depth 3 -o ./results
        """
    )

    # LDAP options
    ldap_group = parser.add_argument_group("LDAP Collection")
    ldap_group.add_argument(
        "-u", "--username",
        help="Domain username for LDAP authentication"
    )
    ldap_group.add_argument(
        "-p", "--password",
        help="Domain password (defaults to $NESTAD_PASSWORD)"
    )
    ldap_group.add_argument(
        "--ntlm-hash",
        dest="ntlm_hash",
        help="NTLM hash for Pass-the-Hash authentication (instead of password)"
    )
    ldap_group.add_argument(
        "-d", "--domain",
        help="Domain name (e.g., corp.local)"
    )
    ldap_group.add_argument(
        "-s", "--server",
        help="Domain controller IP address or hostname"
    )
    ldap_group.add_argument(
        "--ssl",
        action="store_true",
        help="Use LDAPS (port 636)"
    )

    # Offline options
    offline_group = parser.add_argument_group("Offline Input")
    offline_group.add_argument(
        "-b", "--bloodhound",
        nargs="+",
        metavar="FILE",
        help="BloodHound/SharpHound JSON or zip files"
    )
    offline_group.add_argument(
        "--graph",
        metavar="FILE",
        help="Group graph JSON file (nodes and memberships)"
    )

    # Analysis options
    analysis_group = parser.add_argument_group("Analysis Options")
    analysis_group.add_argument(
        "--max-depth",
        type=positive_int,
        default=DEFAULT_MAX_DEPTH,
        help=f"Maximum allowed nesting depth (default: {DEFAULT_MAX_DEPTH})"
    )
    analysis_group.add_argument(
        "--workers",
        type=positive_int,
        default=1,
        help="Number of groups scanned in parallel (default: 1)"
    )
    analysis_group.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Stop the scan after this many seconds, keeping findings so far"
    )

    # Output options
    output_group = parser.add_argument_group("Output")
    output_group.add_argument(
        "-o", "--output",
        default="output",
        help="Output directory for results (default: ./output)"
    )
    output_group.add_argument(
        "--no-json",
        action="store_true",
        help="Do not write the JSON scan report"
    )

    # General options
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"nestAD {__version__}"
    )
    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    has_ldap = bool(args.domain and args.server)
    inputs = [has_ldap, bool(args.bloodhound), bool(args.graph)]
    if sum(inputs) != 1:
        parser.error("Provide exactly one input: -d/-s for LDAP, -b for BloodHound files, or --graph")
    if args.timeout is not None and args.timeout <= 0:
        parser.error("--timeout must be positive")

    password = args.password or (password_from_env() if args.username and not args.ntlm_hash else None)

    config = {
        "ldap": {
            "use_ssl": args.ssl,
        },
        "analysis": {
            "max_depth": args.max_depth,
            "workers": args.workers,
            "timeout": args.timeout,
        },
        "output": {
            "output_dir": args.output,
            "generate_json": not args.no_json,
        },
        "verbose": args.verbose,
    }

    print_banner()

    try:
        print(f"\n{'='*60}")
        print("Starting Scan")
        print(f"{'='*60}\n")

        # Build the source here so the text report can resolve group names
        source = build_source(
            username=args.username,
            password=password,
            ntlm_hash=args.ntlm_hash,
            domain=args.domain,
            server_ip=args.server,
            input_files=args.bloodhound,
            graph_file=args.graph,
            config=NestadConfig.from_dict(config),
            log=print if args.verbose else (lambda message: None)
        )

        result = run_scan(source=source, config=config)

    except DirectoryUnavailable as e:
        print(f"\n[!] Directory unavailable: {e}")
        return 1

    print(f"\n{'='*60}")
    print("Scan Complete")
    print(f"{'='*60}\n")

    print(generate_text_report(result, source.get_group_name))

    if result.failures_report_path:
        print(f"\n[!] {result.failure_count} lookup failures saved to: {result.failures_report_path}")
    else:
        print("\n[+] All group lookups succeeded")
    if result.report_path:
        print(f"[+] JSON report: {result.report_path}")

    return 0


def print_banner():
    """Print the nestAD banner."""
    banner = r"""
                 _      _    ____
  _ __   ___ ___| |_   / \  |  _ \
 | '_ \ / _ / __| __| / _ \ | | | |
 | | | |  __\__ | |_ / ___ \| |_| |
 |_| |_|\___|___/\__/_/   \_\____/

  Active Directory Group Nesting Analyzer
  Read-only - no directory changes are made
    """
    print(banner)


if __name__ == "__main__":
    sys.exit(main())
