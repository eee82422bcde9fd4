"""auditcore CLI - main entry point and command registration hub."""
# ruff: noqa: E402 - commands are imported after the group is defined

import click

from auditcore import __version__


@click.group()
@click.version_option(version=__version__, prog_name="auditcore")
@click.help_option("-h", "--help")
def cli():
    """auditcore - dependency graph and local security scanning core

    \b
    QUICK START:
      auditcore graph edges.json --root npm://my-app:1.0.0
      auditcore jas --working-dirs .

    \b
    For detailed options: auditcore <command> --help"""
    pass


from auditcore.commands.graph import graph
from auditcore.commands.jas import jas

cli.add_command(graph)
cli.add_command(jas)


def main():
    """Main entry point for console script."""
    cli()


if __name__ == "__main__":
    main()
