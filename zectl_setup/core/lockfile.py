#!/usr/bin/env python3
# zectl-setup/zectl_setup/core/lockfile.py

"""
Install Manifest
Tracks files, directories, backups and package versions written by the
install pipelines so uninstall can return the host to its previous state
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, List, Optional


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InstallManifest:
    """
    JSON ledger of everything an install created or backed up.

    Paths are stored as absolute host paths (never relocated), so the same
    manifest is meaningful whether the pipeline ran against `/` or an
    alternate root.
    """

    SECTIONS = ('packages', 'files', 'directories', 'backups', 'modules')

    def __init__(self, manifest_path: Path):
        """
        Args:
            manifest_path: Location of the manifest on disk (already relocated)
        """

        self.manifest_path = manifest_path

        if manifest_path.exists():
            self._load()
        else:
            self.data: Dict[str, Any] = {
                'created': _now(),
                'packages': {},
                'files': [],
                'directories': [],
                'backups': {},
                'modules': {}
            }

    def _load(self):
        """Load existing manifest"""

        with open(self.manifest_path, 'r') as f:
            self.data = json.load(f)

        # Ensure all required sections exist
        for section in self.SECTIONS:
            if section not in self.data:
                self.data[section] = [] if section in ('files', 'directories') else {}

    def exists(self) -> bool:
        return self.manifest_path.exists()

    def record_package_version(self, package: str, version: str):
        """
        Record the package version installed by a pipeline

        Args:
            package: Package name
            version: Version string reported by pacman
        """

        self.data['packages'][package] = {
            'version': version,
            'timestamp': _now()
        }

    def record_created_file(self, path: str):
        """Record a file that did not exist before the pipeline wrote it"""

        if path not in self.data['files']:
            self.data['files'].append(path)

    def record_created_directory(self, path: str):
        """Record a directory the pipeline had to create"""

        if path not in self.data['directories']:
            self.data['directories'].append(path)

    def record_backup(self, original: str, backup: str):
        """
        Record the one-time backup taken of a pre-existing file

        Args:
            original: Path of the file that was modified
            backup: Path of its backup copy
        """

        self.data['backups'][original] = backup

    def forget_file(self, path: str):
        if path in self.data['files']:
            self.data['files'].remove(path)

    def forget_backup(self, original: str):
        self.data['backups'].pop(original, None)

    def record_module_execution(self, module_name: str, result: Dict[str, Any]):
        """
        Record a module execution result

        Args:
            module_name: Name of the executed module
            result: Module execution results
        """

        # Store only non-verbose information to keep the manifest readable
        entry = {
            'status': result.get('status'),
            'timestamp': _now(),
            'warnings': len(result.get('warnings', []))
        }

        if module_name == 'SystemDetection':
            entry['detected'] = result.get('detected')
        elif module_name == 'BootEnvironment':
            entry['boot_environment'] = result.get('boot_environment')
        elif module_name == 'BootSigning':
            entry['signed'] = result.get('signed', [])

        self.data['modules'][module_name] = entry

    def save(self):
        """Write manifest to disk"""

        self.data['last_updated'] = _now()
        self.manifest_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.manifest_path, 'w') as f:
            json.dump(self.data, f, indent=2)

    def delete(self):
        """Remove the manifest file from disk"""

        if self.manifest_path.exists():
            self.manifest_path.unlink()

    @property
    def created_files(self) -> List[str]:
        return list(self.data['files'])

    @property
    def created_directories(self) -> List[str]:
        return list(self.data['directories'])

    @property
    def backups(self) -> Dict[str, str]:
        return dict(self.data['backups'])

    def is_created_file(self, path: str) -> bool:
        return path in self.data['files']

    def get_backup(self, original: str) -> Optional[str]:
        return self.data['backups'].get(original)

    def get_package_version(self, package: str) -> Optional[str]:
        """
        Get a recorded package version

        Returns:
            Package version or None if not recorded
        """

        if package in self.data['packages']:
            return self.data['packages'][package]['version']
        return None

    def get_module_result(self, module_name: str) -> Optional[Dict[str, Any]]:
        if module_name in self.data['modules']:
            return self.data['modules'][module_name]
        return None
