#!/usr/bin/env python3
# zectl-setup/zectl_setup/modules/generated_files.py

"""
Generated File Modules
pacman hooks and the manager wrapper scripts
"""

import sys
from typing import Any, Dict, List

from .base import SetupModule
from ..core.errors import ConfigurationError
from ..utils.templates import HOOKS, render_hook, render_manager_script


class KernelHooks(SetupModule):
    """
    Writes pacman hooks that fire on kernel package transactions.

    Options:
      - hooks: names from the hook table ('zectl-kernel', 'secureboot-sign')
    """

    def execute(self) -> Dict[str, Any]:
        hooks_dir = self.context.host_path('hooks_dir')
        written: List[str] = []

        self.logger.info("Setting up pacman hooks for kernel updates...")
        for name in self.options.get('hooks', []):
            spec = HOOKS.get(name)
            if spec is None:
                raise ConfigurationError(f"Unknown pacman hook: {name}")
            path = f"{hooks_dir}/{spec.filename}"
            self.context.write_file(path, render_hook(spec))
            written.append(path)
            self.logger.info(f"Installed hook {path}")

        return self.result(files=written)


class ManagerScripts(SetupModule):
    """
    Writes executable wrapper scripts into the bin directory.

    Options:
      - scripts: 'zectl-manager' and/or 'secureboot-manager'
    """

    def execute(self) -> Dict[str, Any]:
        bin_dir = self.context.host_path('bin_dir')
        interpreter = self.config.get('manager_interpreter') or sys.executable
        esp_path = self._esp_path()
        written: List[str] = []

        for name in self.options.get('scripts', []):
            try:
                content = render_manager_script(name, interpreter, esp_path)
            except ValueError as e:
                raise ConfigurationError(str(e))
            path = f"{bin_dir}/{name}"
            self.logger.info(f"Creating {name} utility script...")
            self.context.write_file(path, content, mode=0o755)
            written.append(path)

        return self.result(files=written)

    def _esp_path(self) -> str:
        if self.context.state.get('esp_path'):
            return self.context.state['esp_path']
        if self.context.detected is not None:
            return self.context.detected.esp_path
        return ""
