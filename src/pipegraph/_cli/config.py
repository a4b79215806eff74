"""Configuration loading from pyproject.toml."""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

from pipegraph._errors import ConfigError
from pipegraph._options import PipelineOptions

_OPTION_KEYS = frozenset(PipelineOptions.model_fields)


@dataclass(slots=True, frozen=True)
class ScriptSource:
    """Script path with optional variable name."""

    script: Path
    name: str | None = None


@dataclass(slots=True, frozen=True)
class ModuleSource:
    """Module path with variable name (e.g., 'examples.wordcount:pipeline')."""

    module_path: str


PipelineSource = ScriptSource | ModuleSource


@dataclass(slots=True, frozen=True)
class PipegraphConfig:
    """Configuration loaded from the `[tool.pipegraph]` table of pyproject.toml.

    All relative paths are resolved from the project root (directory containing pyproject.toml).
    """

    pipeline: PipelineSource | None = None
    options: PipelineOptions = field(default_factory=PipelineOptions)
    project_root: Path | None = None


def find_pyproject_toml(start_dir: Path | None = None) -> Path | None:
    """Find pyproject.toml by walking up from start_dir.

    Args:
        start_dir: Starting directory. Defaults to current working directory.

    Returns:
        Path to pyproject.toml if found, None otherwise.

    """
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()

    while True:
        candidate = current / "pyproject.toml"
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def parse_pipeline_source(value: object, project_root: Path) -> PipelineSource:
    """Parse a pipeline reference.

    Accepts "module.path:variable" or a table `{ script = "path.py", name = "pipeline" }`.

    Raises:
        ConfigError: If the value format is invalid

    """
    if isinstance(value, str):
        if ":" not in value:
            msg = f"Invalid module path '{value}'. Expected format: 'module.path:variable_name'"
            raise ConfigError(msg)
        return ModuleSource(module_path=value)

    if isinstance(value, dict):
        value_dict = cast("dict[str, object]", value)
        script_value = value_dict.get("script")
        if not isinstance(script_value, str):
            msg = "Invalid [tool.pipegraph].pipeline.script: expected string path"
            raise ConfigError(msg)
        script_path = Path(script_value)
        if not script_path.is_absolute():
            script_path = project_root / script_path

        name = value_dict.get("name")
        if name is not None and not isinstance(name, str):
            msg = "Invalid [tool.pipegraph].pipeline.name: expected string"
            raise ConfigError(msg)

        return ScriptSource(script=script_path, name=name)

    msg = "Invalid [tool.pipegraph].pipeline configuration. Expected string or table with 'script' key."
    raise ConfigError(msg)


def load_config(pyproject_path: Path) -> PipegraphConfig:
    """Load and validate [tool.pipegraph] config from pyproject.toml.

    Raises:
        ConfigError: If the configuration is invalid

    """
    project_root = pyproject_path.parent

    with pyproject_path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid TOML in {pyproject_path}: {e}"
            raise ConfigError(msg) from e

    section: dict[str, Any] = data.get("tool", {}).get("pipegraph", {})
    if not isinstance(section, dict):
        msg = "Invalid [tool.pipegraph]: expected a table"
        raise ConfigError(msg)
    if not section:
        return PipegraphConfig(project_root=project_root)

    unknown = set(section) - _OPTION_KEYS - {"pipeline"}
    if unknown:
        msg = f"Unknown keys in [tool.pipegraph]: {', '.join(sorted(unknown))}"
        raise ConfigError(msg)

    pipeline_source: PipelineSource | None = None
    if "pipeline" in section:
        pipeline_source = parse_pipeline_source(section["pipeline"], project_root)

    options = PipelineOptions.from_mapping({k: v for k, v in section.items() if k in _OPTION_KEYS})

    return PipegraphConfig(pipeline=pipeline_source, options=options, project_root=project_root)


def get_config() -> PipegraphConfig:
    """Get config from pyproject.toml in current directory or parents."""
    pyproject_path = find_pyproject_toml()
    if pyproject_path is None:
        return PipegraphConfig()
    return load_config(pyproject_path)
