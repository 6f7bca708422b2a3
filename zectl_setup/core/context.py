#!/usr/bin/env python3
# zectl-setup/zectl_setup/core/context.py

"""
Pipeline context
Shared state handed to every module: configuration, tool capabilities,
terminal UI, filesystem root, clock, manifest and detection results
"""

import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .detect import DetectedSystem, HostProbe
from .lockfile import InstallManifest
from ..utils.terminal_ui import TerminalUI
from ..utils.tools import HostTools


class SetupContext:
    """
    Everything a module needs to act on the host.

    File operations go through `path()`, which maps an absolute host path
    under `root`. Writes made through `write_file()` and `ensure_dir()` are
    recorded in the manifest when one is open, and pre-existing files are
    backed up once before their first modification.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        tools: Optional[HostTools] = None,
        ui: Optional[TerminalUI] = None,
        root: Union[str, Path] = '/',
        clock: Callable[[], datetime] = datetime.now,
        euid: Optional[int] = None,
    ):
        self.config = config
        self.tools = tools or HostTools()
        self.ui = ui or TerminalUI()
        self.root = Path(root)
        self.clock = clock
        self.euid = os.geteuid() if euid is None else euid
        self.probe = HostProbe(self.tools, self.root)
        self.manifest: Optional[InstallManifest] = None
        self.detected: Optional[DetectedSystem] = None
        self.state: Dict[str, Any] = {}
        self.logger = logging.getLogger(self.__class__.__name__)

    # -- configuration ---------------------------------------------------

    def setting(self, section: str, key: str, default: Any = None) -> Any:
        return self.config.get(section, {}).get(key, default)

    def host_path(self, key: str) -> str:
        """Absolute host path configured under `paths.<key>`"""
        return self.config['paths'][key]

    @property
    def backup_suffix(self) -> str:
        return self.config.get('backup_suffix', '.backup-zectl')

    # -- filesystem ------------------------------------------------------

    def path(self, host_path: str) -> Path:
        """Map an absolute host path into the configured root"""
        return self.root / str(host_path).lstrip('/')

    def is_root(self) -> bool:
        return self.euid == 0

    def open_manifest(self) -> InstallManifest:
        manifest_path = self.host_path('manifest')
        self.manifest = InstallManifest(self.path(manifest_path))
        self.ensure_dir(str(Path(manifest_path).parent))
        return self.manifest

    def load_manifest(self) -> Optional[InstallManifest]:
        """Open the manifest only if an install left one behind"""
        if self.path(self.host_path('manifest')).exists():
            return self.open_manifest()
        return None

    def backup_path(self, host_path: str) -> str:
        return f"{host_path}{self.backup_suffix}"

    def backup_once(self, host_path: str) -> Optional[str]:
        """
        Copy an existing file to `<file><backup_suffix>` unless that backup exists.

        Returns:
            The backup's host path, or None when there was nothing to back up.
        """
        source = self.path(host_path)
        if not source.is_file():
            return None
        backup = self.backup_path(host_path)
        target = self.path(backup)
        if not target.exists():
            shutil.copy2(source, target)
            self.logger.info(f"Backed up {host_path} to {backup}")
        if self.manifest is not None and not self.manifest.is_created_file(host_path):
            self.manifest.record_backup(host_path, backup)
        return backup

    def restore_backup(self, host_path: str, backup: Optional[str] = None) -> bool:
        """
        Put a backup copy back in place of `host_path` and delete the backup.

        Returns:
            False when no backup exists.
        """
        backup = backup or self.backup_path(host_path)
        source = self.path(backup)
        if not source.is_file():
            return False
        shutil.copy2(source, self.path(host_path))
        source.unlink()
        if self.manifest is not None:
            self.manifest.forget_backup(host_path)
        self.logger.info(f"Restored {host_path} from {backup}")
        return True

    def ensure_dir(self, host_path: str) -> None:
        """Create a directory and any missing parents, recording each one created"""
        missing: List[str] = []
        current = Path(host_path)
        while not self.path(str(current)).exists():
            missing.append(str(current))
            if current.parent == current:
                break
            current = current.parent
        for directory in reversed(missing):
            self.path(directory).mkdir(exist_ok=True)
            if self.manifest is not None:
                self.manifest.record_created_directory(directory)

    def write_file(self, host_path: str, content: str, mode: Optional[int] = None) -> bool:
        """
        Write a generated file.

        A file that already holds `content` is left untouched. A pre-existing
        file the pipeline did not create is backed up once first.

        Returns:
            True when the file was written.
        """
        target = self.path(host_path)
        if target.is_file() and target.read_text() == content:
            if mode is not None:
                target.chmod(mode)
            return False

        self.ensure_dir(str(Path(host_path).parent))
        if target.exists():
            if self.manifest is None or not self.manifest.is_created_file(host_path):
                self.backup_once(host_path)
        elif self.manifest is not None:
            self.manifest.record_created_file(host_path)

        target.write_text(content)
        if mode is not None:
            target.chmod(mode)
        return True

    def remove_file(self, host_path: str) -> bool:
        target = self.path(host_path)
        if target.is_file() or target.is_symlink():
            target.unlink()
            return True
        return False

    def remove_tree(self, host_path: str) -> bool:
        target = self.path(host_path)
        if target.is_dir():
            shutil.rmtree(target)
            return True
        return self.remove_file(host_path)
