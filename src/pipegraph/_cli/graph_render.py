"""Rich rendering utilities for graph query commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from .graph_query import NodeKind

if TYPE_CHECKING:
    from rich.console import Console

    from .graph_query import NodeDetail, NodeInfo, TreeNode


def render_node_table(nodes: list[NodeInfo], console: Console) -> None:
    """Render node list as a Rich table.

    Args:
        nodes: List of NodeInfo to render.
        console: Rich Console to output to.

    """
    if not nodes:
        console.print("[dim]No nodes match the given filters[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Name", style="bold")
    table.add_column("Kind")
    table.add_column("Inputs", justify="right")
    table.add_column("Outputs", justify="right")
    table.add_column("Requested")

    for node in nodes:
        kind_style = _get_kind_style(node.kind)
        requested = escape(node.requested_name)
        if not node.stable_name:
            requested = f"[yellow]{requested}[/yellow]"
        table.add_row(
            escape(node.full_name),
            f"[{kind_style}]{node.kind.upper()}[/{kind_style}]",
            str(node.input_count),
            str(node.output_count),
            requested,
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(nodes)} nodes[/dim]")


def render_node_detail(detail: NodeDetail, console: Console) -> None:
    """Render the dataflow neighbourhood of a node."""
    kind_style = _get_kind_style(detail.kind)
    console.print(f"[bold]Node:[/bold] {escape(detail.full_name)}")
    console.print(f"[cyan]Kind:[/cyan]       [{kind_style}]{detail.kind.upper()}[/{kind_style}]")
    console.print(f"[cyan]Transform:[/cyan]  {escape(detail.transform)}")
    console.print()

    for title, names in (("Upstream", detail.upstream), ("Downstream", detail.downstream)):
        if names:
            console.print(f"[cyan]{title} ({len(names)}):[/cyan]")
            for name in names:
                console.print(f"  {escape(name)}")
        else:
            console.print(f"[cyan]{title}:[/cyan] [dim]None[/dim]")
        console.print()


def render_tree(tree_node: TreeNode, console: Console) -> None:
    """Render a pipeline tree using Rich Tree."""
    rich_tree = Tree(f"[bold]{escape(tree_node.label)}[/bold]")
    _add_tree_children(rich_tree, tree_node.children)
    console.print(rich_tree)


def _add_tree_children(parent: Tree, children: list[TreeNode]) -> None:
    for child in children:
        style = _get_kind_style(child.kind)
        child_tree = parent.add(f"[{style}]{escape(child.label)}[/{style}]")
        _add_tree_children(child_tree, child.children)


def _get_kind_style(kind: NodeKind) -> str:
    match kind:
        case NodeKind.COMPOSITE:
            return "blue"
        case NodeKind.PRIMITIVE:
            return "green"
        case NodeKind.ARTIFACT:
            return "dim"
