"""
LDAP Directory Source
=====================

Live, read-only group enumeration via LDAP.

Features:
- Enumerates every group object under the domain naming context
- Resolves the direct child groups of a group with a memberOf query
- Supports LDAP (389) and LDAPS (636), NTLM, Pass-the-Hash and simple binds
- Handles large environments with paged searches

Design Decisions:
-----------------
1. Uses the ldap3 library for cross-platform LDAP support
2. A group's identifier is its distinguished name
3. Every child lookup is a fresh query; nothing is cached between groups
4. Each worker thread gets its own connection (ldap3 connections are not
   safe for interleaved paged searches)

Security Consideration:
This module performs read-only operations. No modifications are made to the AD.
"""

import threading
from typing import Optional, Callable

# LDAP library
try:
    from ldap3 import Server, Connection, ALL, SUBTREE, BASE, NTLM, SIMPLE
    from ldap3.core.exceptions import LDAPException, LDAPInvalidDnError
    from ldap3.core.results import (
        RESULT_SUCCESS, RESULT_NO_SUCH_OBJECT, RESULT_INSUFFICIENT_ACCESS_RIGHTS
    )
    from ldap3.utils.conv import escape_filter_chars
    from ldap3.utils.dn import parse_dn
    LDAP3_AVAILABLE = True
except ImportError:
    LDAP3_AVAILABLE = False

from ..model.errors import (
    DirectoryUnavailable, GroupNotFound, AccessDenied, DirectoryTransientError
)
from ..model.schemas import GroupId
from ..config import LDAPConfig
from .source import DirectorySource


GROUP_FILTER = "(objectClass=group)"


class LDAPDirectorySource(DirectorySource):
    """Directory source backed by live LDAP queries.

    Usage:
        source = LDAPDirectorySource(
            server_ip="192.168.1.100",
            domain="corp.local",
            username="auditor",
            password="password"
        )
        source.connect()
        groups = source.list_all_groups()
        children = source.list_child_groups(groups[0])
        source.close()
    """

    def __init__(
        self,
        server_ip: str,
        domain: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        ntlm_hash: Optional[str] = None,
        config: Optional[LDAPConfig] = None,
        base_dn: Optional[str] = None,
        verbose: bool = True,
        progress_callback: Optional[Callable[[str], None]] = None,
        connection_factory: Optional[Callable[[], object]] = None
    ):
        """Initialize the LDAP source.

        Args:
            server_ip: IP address or hostname of the domain controller
            domain: Domain name (e.g., "corp.local")
            username: Username for authentication (domain\\user or user@domain)
            password: Password for authentication
            ntlm_hash: NTLM hash for Pass-the-Hash (format: LM:NT or just NT)
            config: LDAPConfig object for connection settings
            base_dn: Search base (derived from domain when omitted)
            verbose: Whether to print progress messages
            progress_callback: Optional callback for progress updates
            connection_factory: Returns a bound ldap3 Connection (defaults to
                binding against server_ip with the given credentials)
        """
        if not LDAP3_AVAILABLE:
            raise ImportError("ldap3 library is required. Install with: pip install ldap3")

        self.server_ip = server_ip
        self.domain = domain
        self.username = username
        self.password = password
        self.ntlm_hash = ntlm_hash
        self.config = config or LDAPConfig()
        self.verbose = verbose
        self.progress_callback = progress_callback
        self.connection_factory = connection_factory or self._open_connection

        # Derive base DN from domain
        self.base_dn = base_dn or ",".join([f"DC={part}" for part in domain.split(".")])

        # One connection per thread
        self._local = threading.local()
        self._connections: list = []
        self._connections_lock = threading.Lock()

    def _log(self, message: str) -> None:
        """Log a message to console and/or callback."""
        if self.verbose:
            print(message)
        if self.progress_callback:
            self.progress_callback(message)

    def describe(self) -> str:
        return f"LDAP {self.server_ip} ({self.base_dn})"

    def _open_connection(self):
        """Bind a new connection to the domain controller.

        Tries NTLM first and falls back to a simple bind for password
        authentication. Without credentials an anonymous bind is used.
        """
        port = self.config.port or (636 if self.config.use_ssl else 389)
        server = Server(
            self.server_ip,
            port=port,
            use_ssl=self.config.use_ssl,
            get_info=ALL,
            connect_timeout=self.config.timeout
        )

        if not (self.username and (self.password or self.ntlm_hash)):
            self._log(f"[*] Connecting anonymously to {self.server_ip}:{port}")
            return Connection(
                server,
                auto_bind=True,
                receive_timeout=self.config.timeout
            )

        # Format username for NTLM
        if '\\' not in self.username and '@' not in self.username:
            ntlm_user = f"{self.domain.split('.')[0].upper()}\\{self.username}"
        else:
            ntlm_user = self.username

        if self.ntlm_hash:
            # Pass-the-Hash: the hash is sent as the NTLM password
            auth_credential = self.ntlm_hash
            auth_type_str = "Pass-the-Hash"
        else:
            auth_credential = self.password
            auth_type_str = "Password"

        self._log(f"[*] Connecting to {self.server_ip}:{port} as {ntlm_user} ({auth_type_str})")

        try:
            return Connection(
                server,
                user=ntlm_user,
                password=auth_credential,
                authentication=NTLM,
                auto_bind=True,
                receive_timeout=self.config.timeout
            )
        except LDAPException:
            if self.ntlm_hash:
                raise
            self._log("[*] NTLM auth failed, trying simple bind...")
            return Connection(
                server,
                user=self.username if '@' in self.username else f"{self.username}@{self.domain}",
                password=self.password,
                authentication=SIMPLE,
                auto_bind=True,
                receive_timeout=self.config.timeout
            )

    def _get_connection(self):
        """Connection owned by the calling thread, bound on first use."""
        connection = getattr(self._local, 'connection', None)
        if connection is None:
            connection = self.connection_factory()
            self._local.connection = connection
            with self._connections_lock:
                self._connections.append(connection)
        return connection

    def connect(self) -> None:
        """Bind the calling thread's connection.

        Raises:
            DirectoryUnavailable: if the server cannot be reached or the bind fails
        """
        try:
            self._get_connection()
        except LDAPException as e:
            self._log(f"[!] Connection failed: {e}")
            raise DirectoryUnavailable(f"Failed to connect to LDAP server {self.server_ip}: {e}") from e
        self._log(f"[+] Connected successfully to {self.server_ip}")

    def _paged_search(self, connection, search_base: str, search_filter: str) -> list[str]:
        """Run a paged subtree search and return the DNs of matching entries."""
        dns = []
        for entry in connection.extend.standard.paged_search(
            search_base=search_base,
            search_filter=search_filter,
            search_scope=SUBTREE,
            attributes=['cn'],
            paged_size=self.config.page_size,
            generator=True
        ):
            # Skip search continuation references
            if entry.get('type') == 'searchResEntry':
                dns.append(str(entry['dn']))
        return dns

    def list_all_groups(self) -> list[GroupId]:
        """Enumerate every group DN under the base DN.

        Raises:
            DirectoryUnavailable: on connection or search failure
        """
        self._log("[*] Enumerating groups...")
        try:
            connection = self._get_connection()
            groups = self._paged_search(connection, self.base_dn, GROUP_FILTER)
        except LDAPException as e:
            raise DirectoryUnavailable(f"Could not list groups under {self.base_dn}: {e}") from e

        result = getattr(connection, 'result', None) or {}
        if result.get('result', RESULT_SUCCESS) != RESULT_SUCCESS:
            raise DirectoryUnavailable(
                f"Could not list groups under {self.base_dn}: {self._describe_result(result)}"
            )

        self._log(f"[+] Found {len(groups)} groups")
        return groups

    def list_child_groups(self, group_id: GroupId) -> list[GroupId]:
        """Resolve the direct child groups of a group.

        The group entry is read first so that a missing or unreadable group is
        distinguished from a group without nested groups.
        """
        try:
            connection = self._get_connection()
            self._read_group_entry(connection, group_id)
            member_filter = f"(&{GROUP_FILTER}(memberOf={escape_filter_chars(group_id)}))"
            children = self._paged_search(connection, self.base_dn, member_filter)
        except LDAPException as e:
            raise self._lookup_error(group_id, getattr(e, 'result', None), str(e)) from e

        # A failed page yields no entries and leaves the code on the connection
        result = connection.result or {}
        code = result.get('result', RESULT_SUCCESS)
        if code != RESULT_SUCCESS:
            raise self._lookup_error(group_id, code, self._describe_result(result))
        return children

    def _read_group_entry(self, connection, group_id: GroupId) -> None:
        """Check that group_id names a readable group object."""
        found = connection.search(
            search_base=group_id,
            search_filter="(objectClass=*)",
            search_scope=BASE,
            attributes=['objectClass']
        )
        result = connection.result or {}
        code = result.get('result', RESULT_SUCCESS)

        if code != RESULT_SUCCESS:
            raise self._lookup_error(group_id, code, self._describe_result(result))

        entries = [e for e in (connection.response or []) if e.get('type') == 'searchResEntry']
        if not found or not entries:
            raise GroupNotFound(group_id, f"No directory object at {group_id}")

        object_classes = entries[0].get('attributes', {}).get('objectClass', [])
        if 'group' not in [str(c).lower() for c in object_classes]:
            raise GroupNotFound(group_id, f"{group_id} is not a group")

    def _lookup_error(self, group_id: GroupId, code: Optional[int], detail: str):
        """Map an LDAP result code to the per-group error taxonomy."""
        if code == RESULT_NO_SUCH_OBJECT:
            return GroupNotFound(group_id, detail)
        if code == RESULT_INSUFFICIENT_ACCESS_RIGHTS:
            return AccessDenied(group_id, detail)
        return DirectoryTransientError(group_id, detail)

    @staticmethod
    def _describe_result(result: dict) -> str:
        description = result.get('description', 'error')
        message = result.get('message')
        return f"{description} ({message})" if message else description

    def get_group_name(self, group_id: GroupId) -> str:
        """First CN component of the DN, or the DN itself."""
        try:
            rdns = parse_dn(group_id)
        except LDAPInvalidDnError:
            return group_id
        if rdns and rdns[0][0].upper() == 'CN':
            return rdns[0][1]
        return group_id

    def close(self) -> None:
        """Close every connection opened by this source."""
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for connection in connections:
            try:
                connection.unbind()
            except LDAPException as e:
                self._log(f"[!] Error closing LDAP connection: {e}")
        self._local = threading.local()
