"""EEPROM read/write CLI commands."""

from __future__ import annotations

import json

import click


@click.group()
def eeprom():
    """EEPROM image operations."""
    pass


@eeprom.command("read")
@click.argument("output", type=click.Path(dir_okay=False, writable=True))
@click.pass_context
def read(ctx: click.Context, output: str) -> None:
    """Read the whole EEPROM into OUTPUT."""
    from oz890.cli.main import open_device

    with open_device(ctx) as dev:
        dev.dump_eeprom(output)
        click.echo(f"EEPROM saved to {output}.")


@eeprom.command("write")
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def write(ctx: click.Context, source: str) -> None:
    """Erase the EEPROM and rewrite it from SOURCE (128 bytes)."""
    from oz890.cli.main import open_device

    with open_device(ctx) as dev:
        dev.flash_eeprom(source)
        click.echo(f"EEPROM rewritten from {source}.")


@eeprom.command("dump")
@click.pass_context
def dump(ctx: click.Context) -> None:
    """Print the EEPROM contents."""
    from oz890.cli.main import open_device

    with open_device(ctx) as dev:
        image = dev.read_image()
        if ctx.obj.get("json_output"):
            click.echo(json.dumps({"data": image.data.hex()}, indent=2))
        else:
            click.echo(image.hex_dump)
