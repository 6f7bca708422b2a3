#!/usr/bin/env python3
# zectl-setup/zectl_setup/core/builder.py

"""
Pipeline engine
Runs the ordered module list of a named pipeline from the configuration
"""

import importlib
import logging
import traceback
from typing import Any, Dict, List, Optional

from .context import SetupContext
from .errors import ConfigurationError, PreconditionError
from ..modules import MODULE_INDEX


class SetupPipeline:
    """
    Orchestrates one zectl-setup pipeline (install, secureboot, uninstall, ...).

    Modules run in configuration order. A module returning status
    'cancelled' stops the pipeline quietly; any other non-success status, a
    PreconditionError or an unexpected exception stops it with an error.
    """

    def __init__(self, context: SetupContext):
        self.context = context
        self.config = context.config
        self.logger = logging.getLogger('ZectlSetup')

    def pipeline_modules(self, name: str) -> List[Dict[str, Any]]:
        pipelines = self.config.get('pipelines', {})
        if name not in pipelines:
            raise ConfigurationError(f"Unknown pipeline: {name}")
        return [m for m in pipelines[name].get('modules', []) if m.get('enabled', True)]

    def execute_pipeline(self, name: str, modules: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Execute a pipeline, or only the named modules of it

        Args:
            name: Pipeline key under `pipelines` in the configuration
            modules: Optional subset of module names to run

        Returns:
            Dict with overall status ('success', 'cancelled' or 'error') and
            per-module results
        """

        entries = self.pipeline_modules(name)
        if modules:
            entries = [entry for entry in entries if entry['name'] in modules]

        record = self.config['pipelines'][name].get('record', False)
        manifest = self.context.open_manifest() if record else None

        self.logger.debug(f"Pipeline {name}: {', '.join(entry['name'] for entry in entries)}")

        results: Dict[str, Dict[str, Any]] = {}
        for entry in entries:
            module_name = entry['name']
            self.logger.debug(f"Executing module: {module_name}")

            try:
                result = self._execute_module(module_name, entry.get('options') or {})
            except PreconditionError as e:
                self.logger.error(str(e))
                return self._finish('error', results, error=str(e), module=module_name)
            except Exception as e:
                error_msg = f"Exception in module {module_name}: {e}"
                self.logger.error(error_msg)
                self.logger.debug(traceback.format_exc())
                return self._finish('error', results, error=error_msg, module=module_name)

            results[module_name] = result
            status = result.get('status')

            if manifest is not None and status == 'success':
                manifest.record_module_execution(module_name, result)
                manifest.save()

            if status == 'cancelled':
                self.logger.info(result.get('message', f"{module_name} cancelled"))
                return self._finish('cancelled', results, module=module_name)

            if status != 'success':
                error_details = result.get('error', f"Module {module_name} failed")
                self.logger.error(f"Module {module_name} failed: {error_details}")
                return self._finish('error', results, error=error_details, module=module_name)

        return self._finish('success', results)

    def _finish(self, status: str, results: Dict[str, Any], **extra) -> Dict[str, Any]:
        warnings = [w for result in results.values() for w in result.get('warnings', [])]
        outcome = {
            'status': status,
            'results': results,
            'warnings': warnings,
            'detected': self.context.detected,
        }
        if self.context.manifest is not None:
            outcome['manifest_path'] = str(self.context.manifest.manifest_path)
        outcome.update(extra)
        return outcome

    def _execute_module(self, module_name: str, options: Dict[str, Any]) -> Dict[str, Any]:
        """Import a module class by name, instantiate it and run it"""

        filename = MODULE_INDEX.get(module_name)
        if filename is None:
            return {
                'status': 'error',
                'error': f"Unknown module {module_name}"
            }

        try:
            module = importlib.import_module(f".{filename}", package="zectl_setup.modules")
        except ImportError as e:
            return {
                'status': 'error',
                'error': f"Failed to import module {module_name}: {e}"
            }

        if not hasattr(module, module_name):
            return {
                'status': 'error',
                'error': f"Class {module_name} not found in module {filename}"
            }

        instance = getattr(module, module_name)(self.context, options)
        return instance.execute()
