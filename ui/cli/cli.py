"""CLI entrypoint for the temporary container keeper."""

from __future__ import annotations

import typer

from ui.cli import commands

app = typer.Typer(help="Temporary container keeper")
config_app = typer.Typer(help="Configuration commands")
fingerprint_app = typer.Typer(help="Ownership fingerprint commands")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
) -> None:
    commands.configure_logging(verbose=verbose)


@app.command("simulate")
def simulate_cmd(
    containers: int = typer.Option(4, min=1, max=100, help="Temporary containers to open"),
    tabs: int = typer.Option(2, min=1, max=20, help="Tabs per container"),
    strategy: str = typer.Option(None, help="Cleanup strategy override: queue or debounce"),
) -> None:
    """Open containers against an in-memory host, close half of them, report survivors."""
    commands.simulate(containers=containers, tabs_per_container=tabs, strategy=strategy)


@config_app.command("show")
def config_show_cmd() -> None:
    """Show effective configuration."""
    commands.config_show()


@fingerprint_app.command("generate")
def fingerprint_generate_cmd(
    container_id: str = typer.Argument(..., help="Durable container id"),
) -> None:
    """Print a fresh ownership name for a container id."""
    commands.fingerprint_generate(container_id)


@fingerprint_app.command("check")
def fingerprint_check_cmd(
    name: str = typer.Argument(..., help="Container display name"),
    container_id: str = typer.Argument(..., help="Durable container id"),
) -> None:
    """Tell whether a name proves ownership of a container."""
    commands.fingerprint_check(name, container_id)


app.add_typer(config_app, name="config")
app.add_typer(fingerprint_app, name="fingerprint")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
