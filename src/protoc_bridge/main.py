"""CLI entrypoint for protoc-bridge."""

import logging

import rich_click as click

from protoc_bridge import __version__
from protoc_bridge.config import TRANSPORT_KINDS
from protoc_bridge.controllers import BridgeCliController, CheckCommand, RunCommand

click.rich_click.USE_MARKDOWN = True
BRIDGE_CONTROLLER = BridgeCliController()


@click.group()
@click.version_option(version=__version__, prog_name="protoc-bridge")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
def protoc_bridge(verbose: bool) -> None:
    """Run protoc with an in-process code generator as its plugin."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@protoc_bridge.command("run")
@click.argument("schemas", nargs=-1, required=True)
@click.option(
    "-I",
    "--include-path",
    "include_paths",
    multiple=True,
    help="Include root passed to protoc as -I. Can be repeated; order is kept.",
)
@click.option(
    "-o",
    "--protoc-option",
    "protoc_options",
    multiple=True,
    help="Extra protoc argument, for example `--bridge_out=gen`. Can be repeated.",
)
@click.option("--protoc", default=None, help="protoc executable. Env: PROTOC_BRIDGE_PROTOC.")
@click.option(
    "--plugin-name",
    default=None,
    help="Plugin name registered with --plugin. Env: PROTOC_BRIDGE_PLUGIN_NAME.",
)
@click.option(
    "--transport",
    type=click.Choice(TRANSPORT_KINDS),
    default=None,
    help="Channel between the launcher and this process. Env: PROTOC_BRIDGE_TRANSPORT.",
)
@click.option(
    "--generator",
    default=None,
    help="Generator as `package.module:callable`. Env: PROTOC_BRIDGE_GENERATOR.",
)
@click.option(
    "--extension-module",
    "extension_modules",
    multiple=True,
    help="Module registering custom option extensions. Can be repeated.",
)
def run(  # noqa: PLR0913
    schemas: tuple[str, ...],
    include_paths: tuple[str, ...],
    protoc_options: tuple[str, ...],
    protoc: str | None,
    plugin_name: str | None,
    transport: str | None,
    generator: str | None,
    extension_modules: tuple[str, ...],
) -> None:
    """Run protoc once with the bridge registered as its plugin."""

    result = BRIDGE_CONTROLLER.run(
        RunCommand(
            schemas=schemas,
            include_paths=include_paths,
            protoc_options=protoc_options,
            protoc=protoc,
            plugin_name=plugin_name,
            transport=transport,
            generator=generator,
            extension_modules=extension_modules,
        ),
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("protoc-bridge run failed.")


@protoc_bridge.command("check")
@click.option("--protoc", default=None, help="protoc executable to check.")
def check(protoc: str | None) -> None:
    """Check that protoc is available and show the selected transport."""

    result = BRIDGE_CONTROLLER.check(CheckCommand(protoc=protoc))
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("protoc-bridge check failed.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    protoc_bridge()
