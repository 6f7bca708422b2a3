#!/usr/bin/env python3
# zectl-setup/zectl_setup/modules/zectl_config.py

"""
zectl Configuration Module
"""

from typing import Any, Dict

from .base import SetupModule
from ..core.errors import PreconditionError
from ..utils.templates import render_zectl_conf


class ZectlConfig(SetupModule):
    """Writes /etc/zectl/zectl.conf from the detected system"""

    def execute(self) -> Dict[str, Any]:
        detected = self.context.detected
        if detected is None:
            raise PreconditionError("System detection must run before zectl configuration")

        self.logger.info("Creating zectl configuration...")
        conf = f"{self.context.host_path('zectl_config_dir')}/zectl.conf"
        content = render_zectl_conf(
            detected.pool, detected.be_root, detected.bootloader, self.config.get('zectl', {}))

        if self.context.write_file(conf, content):
            self.logger.info(f"Wrote {conf}")
        else:
            self.logger.info(f"{conf} is up to date")
        return self.result(path=conf)
