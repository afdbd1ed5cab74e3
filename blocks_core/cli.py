"""Click entry point for blocks."""

import os
import shutil
from pathlib import Path

import click

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])


@click.command(context_settings=CONTEXT_SETTINGS)
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path),
                default=".", required=False)
@click.option("--debug", is_flag=True, default=False,
              help="Log at DEBUG level to ~/.blocks/debug/blocks.log")
@click.option("--config", "config_path", default=None,
              type=click.Path(dir_okay=False, path_type=Path),
              help="Settings file (default ~/.blocks/config.yaml)")
def cli(path: Path, debug: bool, config_path: Path | None):
    """Live dashboard for the git repository at PATH."""
    if debug:
        # Must be set before any blocks logger is configured
        os.environ["BLOCKS_DEBUG"] = "1"

    # Late imports: loggers are configured at import time
    from blocks_core.config import load_settings
    from blocks_core.git_ops import get_git_root
    from blocks_core.gh_ops import gh_available

    if shutil.which("git") is None:
        click.echo("git not found on PATH.", err=True)
        raise SystemExit(1)
    root = get_git_root(path.resolve())
    if root is None:
        click.echo(f"Not a git repository: {path.resolve()}", err=True)
        raise SystemExit(1)
    if not gh_available():
        click.echo("gh not found; pull request info is disabled.", err=True)

    settings = load_settings(config_path)

    from blocks_core.tui.app import BlocksApp
    app = BlocksApp(root, settings)
    app.run()


def main():
    cli()
