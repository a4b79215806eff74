"""Utilities to discover pipelines in scripts and modules.

This module was adapted from `fastapi_cli.discover` of package `fastapi-cli` version 0.0.8 (77e6d1f).

A pipeline reference may name either a `Pipeline` instance or a function
taking a fresh `Pipeline` and applying transforms to it. The latter lets the
CLI build the pipeline with the configured options.
"""

from __future__ import annotations

import importlib
import logging
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pipegraph._options import PipelineOptions
from pipegraph._pipeline import Pipeline

from .config import ModuleSource, ScriptSource

if TYPE_CHECKING:
    from pathlib import Path
    from types import ModuleType

    from .config import PipelineSource

logger = logging.getLogger(__name__)


@dataclass
class ModuleData:
    """Module data for a Python module."""

    module_import_str: str
    extra_sys_path: Path
    module_paths: list[Path]


def get_module_data_from_path(path: Path) -> ModuleData:
    """Get module data from a file path.

    Args:
        path: Path to a Python file or package

    Returns:
        ModuleData containing module import information

    """
    use_path = path.resolve()
    module_path = use_path
    if use_path.is_file() and use_path.stem == "__init__":
        module_path = use_path.parent
    module_paths = [module_path]
    extra_sys_path = module_path.parent
    for parent in module_path.parents:
        init_path = parent / "__init__.py"
        if init_path.is_file():
            module_paths.insert(0, parent)
            extra_sys_path = parent.parent
        else:
            break

    module_str = ".".join(p.stem for p in module_paths)
    return ModuleData(
        module_import_str=module_str,
        extra_sys_path=extra_sys_path.resolve(),
        module_paths=module_paths,
    )


def _materialize(obj: object, label: str, options: PipelineOptions) -> Pipeline:
    if isinstance(obj, Pipeline):
        return obj
    if callable(obj):
        pipeline = Pipeline.create(options)
        obj(pipeline)
        return pipeline
    msg = f"'{label}' is neither a Pipeline nor a function building one"
    raise TypeError(msg)


def _pick(module: ModuleType, name: str | None, options: PipelineOptions) -> Pipeline:
    if name:
        if not hasattr(module, name):
            msg = f"Could not find pipeline '{name}' in {module.__name__}"
            raise ValueError(msg)
        return _materialize(getattr(module, name), name, options)

    for attr in dir(module):
        obj = getattr(module, attr)
        if isinstance(obj, Pipeline):
            logger.debug("Found pipeline: %s", attr)
            return obj

    msg = "Could not find a Pipeline in module, try using --pipeline"
    raise ValueError(msg)


def load_pipeline_from_script(
    script_path: Path,
    name: str | None = None,
    options: PipelineOptions | None = None,
) -> Pipeline:
    """Load a pipeline from a Python script path.

    Args:
        script_path: Path to the Python script containing the pipeline
        name: Name of the variable. If None, the first Pipeline instance is used
        options: Options for pipelines built by a function

    Raises:
        ImportError: If the module cannot be imported
        ValueError: If no pipeline is found or the named variable doesn't exist
        TypeError: If the named variable is not a Pipeline or a function

    """
    module_data = get_module_data_from_path(script_path)
    sys.path.insert(0, str(module_data.extra_sys_path))

    try:
        module = importlib.import_module(module_data.module_import_str)
    except (ImportError, ValueError):
        logger.exception("Import error")
        logger.warning("Ensure all the package directories have an __init__.py file")
        raise

    return _pick(module, name, options or PipelineOptions())


def load_pipeline_from_module_path(module_path: str, options: PipelineOptions | None = None) -> Pipeline:
    """Load a pipeline from a module path (e.g., 'examples.wordcount:build').

    Raises:
        ValueError: If module path format is invalid
        TypeError: If the variable is not a Pipeline or a function

    """
    if ":" not in module_path:
        msg = "Module path must be in format 'module.path:variable_name'"
        raise ValueError(msg)

    module_name, name = module_path.split(":", 1)
    module = importlib.import_module(module_name)
    return _pick(module, name, options or PipelineOptions())


def load_pipeline_from_source(source: PipelineSource, options: PipelineOptions | None = None) -> Pipeline:
    """Load a pipeline from a PipelineSource (script or module)."""
    match source:
        case ScriptSource(script=script, name=name):
            return load_pipeline_from_script(script, name, options)
        case ModuleSource(module_path=module_path):
            return load_pipeline_from_module_path(module_path, options)
