"""
BloodHound/SharpHound JSON Loader
=================================

Parses BloodHound-compatible JSON files into a group containment ADGraph,
so that nesting can be analyzed offline from an existing collection.

Supported Formats:
- BloodHound CE / SharpHound v4+ JSON ({"meta": ..., "data": [...]})
- Legacy SharpHound JSON ({"groups": [...], "users": [...]})
- Plain arrays of objects (type inferred from the file name)
- Zipped SharpHound exports

Design Decisions:
-----------------
1. Only groups.json carries containment; users/computers files only type members
2. Member types come from each member's ObjectType
3. Malformed entries are skipped, never fatal
"""

import json
import zipfile
from pathlib import Path
from typing import Optional, Callable

from ..model.schemas import NodeType
from ..model.graph_builder import ADGraph


class BloodHoundLoader:
    """Loader for BloodHound/SharpHound JSON data.

    Usage:
        loader = BloodHoundLoader()
        graph = loader.load_files(["groups.json", "users.json"])

        # Or load a zip file
        graph = loader.load_zip("sharphound_output.zip")
    """

    def __init__(
        self,
        verbose: bool = False,
        progress_callback: Optional[Callable[[str], None]] = None
    ):
        """Initialize the BloodHound loader.

        Args:
            verbose: Whether to print progress messages
            progress_callback: Optional callback for progress updates
        """
        self.verbose = verbose
        self.progress_callback = progress_callback
        self.graph = ADGraph()
        self.skipped_entries = 0

    def _log(self, message: str) -> None:
        """Log a message to console and/or callback."""
        if self.verbose:
            print(message)
        if self.progress_callback:
            self.progress_callback(message)

    def load_files(self, file_paths: list[str]) -> ADGraph:
        """Load multiple BloodHound JSON (or zip) files.

        Args:
            file_paths: List of paths to JSON or zip files

        Returns:
            ADGraph populated with the loaded data

        Raises:
            FileNotFoundError: if a listed file does not exist
        """
        self.graph = ADGraph()
        self.skipped_entries = 0

        for file_path in file_paths:
            self._load_file(file_path)

        self._log(f"[+] Loaded {self.graph.group_count} groups, {self.graph.edge_count} memberships")
        return self.graph

    def load_zip(self, zip_path: str) -> ADGraph:
        """Load a SharpHound zip archive.

        Args:
            zip_path: Path to the zip file

        Returns:
            ADGraph populated with the loaded data
        """
        return self.load_files([zip_path])

    def _load_file(self, file_path: str) -> None:
        """Load a single JSON or zip file."""
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"BloodHound file not found: {file_path}")

        self._log(f"[*] Loading {path.name}...")

        if path.suffix.lower() == '.zip':
            with zipfile.ZipFile(path, 'r') as zf:
                for name in zf.namelist():
                    if name.endswith('.json'):
                        self._log(f"[*] Loading {name} from zip...")
                        with zf.open(name) as f:
                            self._process_json(json.load(f), name)
        else:
            with open(path, 'r', encoding='utf-8-sig') as f:
                self._process_json(json.load(f), path.name)

    def _process_json(self, data, filename: str) -> None:
        """Dispatch parsed JSON by content type.

        Args:
            data: Parsed JSON data
            filename: Original filename (for type hints)
        """
        filename_lower = filename.lower()

        # BloodHound CE format (has meta and data keys)
        if isinstance(data, dict) and 'data' in data and 'meta' in data:
            meta = data['meta'] if isinstance(data['meta'], dict) else {}
            meta_type = str(meta.get('type') or '').lower()
            self._dispatch(meta_type or filename_lower, data['data'])
            return

        # Older SharpHound format (direct keys)
        if isinstance(data, dict):
            for key in ('groups', 'users', 'computers'):
                if key in data:
                    self._dispatch(key, data[key])
            return

        # Array of objects
        if isinstance(data, list):
            self._dispatch(filename_lower, data)

    def _dispatch(self, type_hint: str, items: list) -> None:
        if not isinstance(items, list):
            raise ValueError(f"Expected a list of {type_hint} entries, got {type(items).__name__}")
        if 'group' in type_hint:
            self._process_groups(items)
        elif 'user' in type_hint:
            self._process_principals(items, NodeType.USER)
        elif 'computer' in type_hint:
            self._process_principals(items, NodeType.COMPUTER)
        else:
            self._log(f"[*] Ignoring unsupported data type: {type_hint}")

    @staticmethod
    def _object_id(item: dict, props: dict) -> str:
        return (
            item.get('ObjectIdentifier') or
            item.get('objectid') or
            props.get('objectid') or
            props.get('objectsid', '')
        )

    def _process_groups(self, groups: list) -> None:
        """Process group objects and their Members lists.

        Args:
            groups: List of group dictionaries
        """
        for group_data in groups:
            try:
                props = group_data.get('Properties', group_data.get('properties', {})) or {}
                object_id = self._object_id(group_data, props)
                if not object_id:
                    raise ValueError("group entry without an object identifier")

                name = props.get('name') or props.get('samaccountname') or group_data.get('Name', '')

                self.graph.add_group(
                    object_id,
                    name=self._clean_name(name) if name else None,
                    domain=props.get('domain'),
                    distinguished_name=props.get('distinguishedname')
                )

                members = group_data.get('Members', group_data.get('members', [])) or []
                for member in members:
                    member_id = member.get('ObjectIdentifier') or member.get('objectid', '')
                    if not member_id:
                        continue
                    member_type = NodeType.from_string(
                        member.get('ObjectType') or member.get('objecttype') or member.get('MemberType')
                    )
                    self.graph.add_membership(object_id, member_id, member_type)

            except (AttributeError, TypeError, ValueError) as e:
                self.skipped_entries += 1
                self._log(f"[!] Error processing group: {e}")

    def _process_principals(self, items: list, node_type: NodeType) -> None:
        """Register users/computers so their memberships are typed correctly."""
        for item in items:
            try:
                props = item.get('Properties', item.get('properties', {})) or {}
                object_id = self._object_id(item, props)
                if not object_id:
                    raise ValueError(f"{node_type.value.lower()} entry without an object identifier")
                name = props.get('name') or props.get('samaccountname')
                self.graph.add_principal(object_id, node_type, name=self._clean_name(name) if name else None)
            except (AttributeError, TypeError, ValueError) as e:
                self.skipped_entries += 1
                self._log(f"[!] Error processing {node_type.value.lower()}: {e}")

    def _clean_name(self, name: str) -> str:
        """Strip the @DOMAIN suffix BloodHound appends to names."""
        if '@' in name:
            return name.split('@')[0]
        return name
