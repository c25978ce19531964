"""
Top-level CLI that aggregates the replica and descriptor sub-apps.
"""

import logging

import typer

from bagreplica.cli.descriptor_cli import descriptor_app
from bagreplica.cli.replica_cli import replica_app

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s %(name)s - %(message)s"
)

main_app = typer.Typer(help="bagreplica CLI")

main_app.add_typer(replica_app, name="replica")
main_app.add_typer(descriptor_app, name="descriptor")


def main():
    main_app()

if __name__ == "__main__":
    main()
