import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from pipegraph._errors import ConfigError, PipelineError
from pipegraph._options import PipelineOptions
from pipegraph._pipeline import Pipeline

from .config import get_config
from .discover import load_pipeline_from_module_path, load_pipeline_from_script, load_pipeline_from_source
from .graph_query import NodeKind, build_tree, find_unstable_names, get_node_detail, list_nodes
from .graph_render import render_node_detail, render_node_table, render_tree

app = typer.Typer()

logger = logging.getLogger(__name__)
# Console for stderr (info/errors)
err_console = Console(stderr=True)
# Console for stdout (results)
out_console = Console()

PathArgument = Annotated[
    str | None,
    typer.Argument(
        help="Path to Python script or module path (e.g., examples.wordcount:build). "
        "Defaults to [tool.pipegraph].pipeline in pyproject.toml",
    ),
]
PipelineOption = Annotated[
    str | None,
    typer.Option("--pipeline", help="Name of the pipeline variable or builder function (for script paths only)"),
]
NamesOption = Annotated[
    str | None,
    typer.Option("--stable-unique-names", help="Naming policy: off/warning/error (aliases ignore/warn/fail)"),
]


@app.callback()
def callback(
    *,
    verbose: bool = typer.Option(default=False, help="Enable verbose output"),
) -> None:
    """Pipegraph CLI."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # Configure rich logging handler to output to stderr
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=err_console,
                show_time=False,
                show_path=verbose,
                rich_tracebacks=True,
            ),
        ],
        force=True,
    )


def _load_pipeline(path: str | None, pipeline_var: str | None, stable_unique_names: str | None) -> Pipeline:
    """Resolve options and load the pipeline, exiting with a message on failure."""
    try:
        config = get_config()
        options = config.options
        if stable_unique_names is not None:
            options = PipelineOptions.from_mapping(
                {**options.model_dump(), "stable_unique_names": stable_unique_names},
            )

        if path is None:
            if config.pipeline is None:
                err_console.print("[red]Error: no pipeline given and no [tool.pipegraph].pipeline configured[/red]")
                raise typer.Exit(code=2)
            return load_pipeline_from_source(config.pipeline, options)
        if ":" in path:
            err_console.print(f"[cyan]Loading pipeline from module:[/cyan] {path}")
            return load_pipeline_from_module_path(path, options)
        err_console.print(f"[cyan]Loading pipeline from script:[/cyan] {path}")
        return load_pipeline_from_script(Path(path), pipeline_var, options)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(code=2) from e
    except PipelineError as e:
        err_console.print(f"[red]Pipeline construction failed:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e


@app.command()
def show(
    path: PathArgument = None,
    *,
    pipeline_var: PipelineOption = None,
    stable_unique_names: NamesOption = None,
) -> None:
    """Print the tree of transform applications and artifacts."""
    pipeline = _load_pipeline(path, pipeline_var, stable_unique_names)
    try:
        tree = build_tree(pipeline)
    except PipelineError as e:
        err_console.print(f"[red]Traversal failed:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e
    render_tree(tree, out_console)


@app.command()
def nodes(
    path: PathArgument = None,
    *,
    pipeline_var: PipelineOption = None,
    stable_unique_names: NamesOption = None,
    kind: Annotated[
        list[NodeKind] | None,
        typer.Option("--kind", help="Only list nodes of this kind (repeatable)"),
    ] = None,
) -> None:
    """List every transform application with its fully-qualified name."""
    pipeline = _load_pipeline(path, pipeline_var, stable_unique_names)
    render_node_table(list_nodes(pipeline, kinds=kind), out_console)


@app.command()
def deps(
    name: Annotated[str, typer.Argument(help="Fully-qualified name of the node")],
    path: PathArgument = None,
    *,
    pipeline_var: PipelineOption = None,
    stable_unique_names: NamesOption = None,
) -> None:
    """Show the primitives upstream and downstream of a node."""
    pipeline = _load_pipeline(path, pipeline_var, stable_unique_names)
    try:
        detail = get_node_detail(pipeline, name)
    except KeyError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e.args[0]))}")
        raise typer.Exit(code=1) from e
    render_node_detail(detail, out_console)


@app.command()
def check(
    path: PathArgument = None,
    *,
    pipeline_var: PipelineOption = None,
) -> None:
    """Fail if any transform name had to be made unique."""
    # Collisions must be recorded, not rejected, to be able to report all of them.
    pipeline = _load_pipeline(path, pipeline_var, "off")
    unstable = find_unstable_names(pipeline)
    if not unstable:
        err_console.print("[green]✓ All transform names are stable and unique[/green]")
        return

    err_console.print(f"[red]✗ {len(unstable)} transform(s) without a stable unique name:[/red]")
    for info in unstable:
        err_console.print(f"  [red]•[/red] {escape(info.full_name)} [dim](requested '{escape(info.requested_name)}')[/dim]")
    raise typer.Exit(code=1)


def main() -> None:
    app()
