#!/usr/bin/env python3
# zectl-setup/zectl_setup/modules/base.py

"""
Common base for pipeline modules
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.context import SetupContext
from ..utils.logging_setup import SUCCESS


class SetupModule:
    """
    One step of a pipeline.

    Subclasses implement `execute()` and return a dict with at least a
    'status' key. Recoverable problems go through `warn()` and end up in the
    result's 'warnings' list; fatal ones raise PreconditionError.
    """

    def __init__(self, context: SetupContext, options: Optional[Dict[str, Any]] = None):
        self.context = context
        self.config = context.config
        self.options = options or {}
        self.tools = context.tools
        self.ui = context.ui
        self.logger = logging.getLogger(self.__class__.__name__)
        self.warnings: List[str] = []

    def execute(self) -> Dict[str, Any]:
        raise NotImplementedError

    def warn(self, message: str) -> None:
        self.logger.warning(message)
        self.warnings.append(message)

    def success(self, message: str) -> None:
        self.logger.log(SUCCESS, message)

    def result(self, status: str = 'success', **extra) -> Dict[str, Any]:
        outcome = {'status': status, 'warnings': list(self.warnings)}
        outcome.update(extra)
        return outcome

    def cancelled(self, message: str) -> Dict[str, Any]:
        return self.result('cancelled', message=message)

    @property
    def simple_mode(self) -> bool:
        return self.options.get('mode') == 'simple'
