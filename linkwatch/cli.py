"""linkwatch CLI — republish a local package into its consumers on every build."""

from __future__ import annotations

import asyncio

import click
from rich.table import Table

from linkwatch import __version__, output
from linkwatch.errors import LinkwatchError
from linkwatch.links.config_file import dump_config, find_config_candidates, load_config
from linkwatch.links.graph import build_graph, consistent_args
from linkwatch.links.models import LinkGraph
from linkwatch.watch.session_set import SessionSet, run_once

# Value of a bare -c: print the config generated from -i/-o/-u instead of running
DUMP_CONFIG = "-"

USAGE_EXAMPLES = """\b
Usage: linkwatch -i [PATH] -o [PATH]
       linkwatch -c [PATH]
       linkwatch -c -i [PATH] -o [PATH]

\b
Example:
  linkwatch -i ../caladan -o ../im-pivot   Updates im-pivot each time caladan is built
"""


@click.command(
    context_settings={"help_option_names": ["-h", "--help"]},
    epilog=USAGE_EXAMPLES,
)
@click.version_option(version=__version__)
@click.option("-i", "--input", "inputs", multiple=True, help="Input directory (must be a npm package)")
@click.option("-o", "--output", "outputs", multiple=True, help="Output directory (must be a npm package)")
@click.option("-u", "--post-update", "post_updates", multiple=True, help="Post update hook")
@click.option(
    "-c",
    "--config",
    is_flag=False,
    flag_value=DUMP_CONFIG,
    default=None,
    help="A JSON config file (if used with other arguments, will just output the generated config on stdout)",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose")
@click.option("--once", is_flag=True, help="Publish once and exit instead of watching")
@click.pass_context
def main(
    ctx: click.Context,
    inputs: tuple[str, ...],
    outputs: tuple[str, ...],
    post_updates: tuple[str, ...],
    config: str | None,
    verbose: bool,
    once: bool,
):
    """Keep vendored copies of local npm packages in sync with their build output.

    Watches each input package's declared files, repacks it on change and
    replaces the copy under every output's node_modules.
    """
    try:
        graph = _resolve_links(ctx, inputs, outputs, post_updates, config)
        if graph is None:
            return

        if verbose:
            _print_links(graph)

        if once:
            outcomes = asyncio.run(run_once(graph))
            failed = any(isinstance(o, Exception) or not o.all_updated for o in outcomes)
            ctx.exit(1 if failed else 0)

        asyncio.run(_watch(graph, verbose))
    except LinkwatchError as e:
        output.warn(str(e))
        ctx.exit(1)
    except KeyboardInterrupt:
        pass


# ── Configuration ────────────────────────────────────────────────────


def _resolve_links(
    ctx: click.Context,
    inputs: tuple[str, ...],
    outputs: tuple[str, ...],
    post_updates: tuple[str, ...],
    config: str | None,
) -> LinkGraph | None:
    """Work out the link graph from the flags, a config file, or a prompt.

    Returns None when there is nothing left to do (config dumped, prompt declined).
    """
    if consistent_args(inputs, outputs):
        graph = build_graph(inputs, outputs, post_updates)
        if config is not None:
            output.log(dump_config(graph))
            return None
        return graph

    if inputs or outputs:
        output.warn("Each --input needs exactly one matching --output")
        click.echo(ctx.get_help())
        ctx.exit(1)

    if config is not None and config != DUMP_CONFIG:
        return load_config(config)

    return _prompt_for_config(ctx)


def _prompt_for_config(ctx: click.Context) -> LinkGraph | None:
    candidates = find_config_candidates(".")

    if len(candidates) != 1:
        # No unambiguous config around
        click.echo(ctx.get_help())
        ctx.exit(1)

    if not click.confirm(f"Wanna use {candidates[0].name} as a config file ?", default=True):
        return None
    return load_config(candidates[0])


def _print_links(graph: LinkGraph) -> None:
    table = Table(title=f"Links ({len(graph)} sources)")
    table.add_column("Source", style="cyan")
    table.add_column("Target")
    table.add_column("Post update", style="dim")

    for source, targets in graph.items():
        for target in targets:
            table.add_row(source, target.path, target.post_update or "")

    output.console.print(table)


# ── Watch ────────────────────────────────────────────────────────────


async def _watch(graph: LinkGraph, verbose: bool) -> None:
    sessions = await SessionSet.open(graph, verbose=verbose)
    try:
        await sessions.wait_closed()
    finally:
        sessions.close()


if __name__ == "__main__":
    main()
