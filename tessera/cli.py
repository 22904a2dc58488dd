"""Tessera CLI.

Commands:
    routes   - Boot a module and print the route table
    serve    - Boot a module and serve it with uvicorn
"""

import sys
from typing import Optional

import click
import uvicorn

from . import __version__
from .application import Application
from .config import ConfigLoader, configure_logging
from .faults.core import Fault


def _boot(module_path: str, env_file: Optional[str], debug: bool) -> Application:
    overrides = {"debug": True} if debug else None
    config = ConfigLoader.load(env_file=env_file, overrides=overrides)
    configure_logging("DEBUG" if config.debug else config.log_level)
    app = Application(config)
    try:
        app.boot(module_path)
    except Fault as fault:
        click.secho(f"Boot failed: {fault}", fg="red", err=True)
        sys.exit(1)
    return app


@click.group()
@click.version_option(version=__version__, prog_name="tessera")
def cli():
    """Module-driven DI container and router."""


@cli.command("routes")
@click.argument("module_path")
@click.option("--env-file", default=".env", show_default=True, help="dotenv file to load")
def routes(module_path: str, env_file: str):
    """
    Print the route table of MODULE_PATH (package.module:ClassName).

    Examples:
      tessera routes myapp.modules:AppModule
    """
    app = _boot(module_path, env_file, debug=False)
    entries = app.router.routes()
    if not entries:
        click.echo("No routes registered.")
        return

    method_width = max(len(e.method) for e in entries)
    path_width = max(len(e.path) for e in entries)
    for entry in entries:
        method = click.style(entry.method.ljust(method_width), fg="green")
        click.echo(f"  {method}  {entry.path.ljust(path_width)}  {entry.handler_label}")


@cli.command("serve")
@click.argument("module_path")
@click.option("--host", default=None, help="Bind host (default from config)")
@click.option("--port", default=None, type=int, help="Bind port (default from config)")
@click.option("--env-file", default=".env", show_default=True, help="dotenv file to load")
@click.option("--debug", is_flag=True, help="Expose fault details in error responses")
def serve(module_path: str, host: Optional[str], port: Optional[int], env_file: str, debug: bool):
    """
    Serve MODULE_PATH (package.module:ClassName) over ASGI.

    Examples:
      tessera serve myapp.modules:AppModule --port 8080
    """
    app = _boot(module_path, env_file, debug)
    config = app.config
    uvicorn.run(
        app.asgi,
        host=host or config.host,
        port=port or config.port,
        log_level="debug" if config.debug else "info",
    )


def main():
    cli()


if __name__ == "__main__":
    main()
