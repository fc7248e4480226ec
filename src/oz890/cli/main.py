"""oz890 CLI - inspect and reconfigure OZ890 battery controllers."""

from __future__ import annotations

import json
import sys

import click
from pydantic import ValidationError

from oz890.exceptions import InvalidParameterError, Oz890Error
from oz890.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


@click.group()
@click.option("--url", default=None, help="FTDI device URL (default: ftdi://ftdi:232h/1)")
@click.option("--address", type=str, default="0x30", help="7-bit I2C slave address")
@click.option("--file", "image_path", type=click.Path(dir_okay=False), default=None,
              help="Operate on a 128-byte EEPROM image file instead of a device")
@click.option("--force", is_flag=True, help="Continue even if the chip ID is unknown")
@click.option("--busy-timeout", type=click.FloatRange(min=0, min_open=True), default=1.0,
              help="Seconds to wait on the EEPROM busy flag")
@click.option("--debug", "-d", count=True, help="Debug output; repeat to trace register access")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.pass_context
def cli(
    ctx: click.Context,
    url: str | None,
    address: str,
    image_path: str | None,
    force: bool,
    busy_timeout: float,
    debug: int,
    json_output: bool,
) -> None:
    """oz890 - OZ890 battery-management controller tool."""
    ctx.ensure_object(dict)
    try:
        i2c_address = int(address, 0)
    except ValueError as exc:
        raise click.BadParameter(f"Invalid address: {address!r}", param_hint="--address") from exc
    if not 0x03 <= i2c_address <= 0x77:
        raise click.BadParameter(
            f"7-bit address must be in 0x03-0x77, got {address}", param_hint="--address"
        )
    ctx.obj["session"] = {
        "device_url": url,
        "image_path": image_path,
        "i2c_address": i2c_address,
        "force": force,
        "busy_timeout": busy_timeout,
        "trace_registers": debug >= 2,
    }
    ctx.obj["debug"] = debug
    ctx.obj["json_output"] = json_output
    setup_logging(level="DEBUG" if debug else "WARNING", json_output=json_output)


def open_device(ctx: click.Context):
    """Build the session config from CLI context and return an unopened Oz890Device."""
    from oz890.config import SessionConfig
    from oz890.core.device import Oz890Device

    try:
        config = SessionConfig(**ctx.obj["session"])
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise InvalidParameterError(f"Invalid session options: {problems}") from exc
    return Oz890Device(config)


@cli.command()
@click.pass_context
def current(ctx: click.Context) -> None:
    """Display the pack current."""
    with open_device(ctx) as dev:
        reading = dev.read_current()
        if ctx.obj.get("json_output"):
            click.echo(reading.model_dump_json(indent=2))
        else:
            click.echo(f"Current: {reading.amps:.3f} A (raw {reading.raw}, "
                       f"sense resistor {reading.sense_resistor_mohm:.1f} mOhm)")


@cli.command()
@click.pass_context
def voltages(ctx: click.Context) -> None:
    """Display all cell voltages."""
    with open_device(ctx) as dev:
        cells = dev.read_cell_voltages()
        if ctx.obj.get("json_output"):
            click.echo(json.dumps([c.model_dump() for c in cells], indent=2))
        else:
            for c in cells:
                click.echo(f"Cell {c.cell}: {c.millivolts:.2f}mV")


@cli.command()
@click.option("--fix", is_flag=True, help="Clear the unbalanced permanent-failure flag")
@click.pass_context
def flags(ctx: click.Context, fix: bool) -> None:
    """Display (and optionally fix) protection flags."""
    from oz890.chip import status

    with open_device(ctx) as dev:
        report = dev.read_status(fix=fix)
        if ctx.obj.get("json_output"):
            click.echo(report.model_dump_json(indent=2))
            return

        if report.hardware_mode:
            click.echo(
                f"Hardware mode. Bleeding is {'enabled' if report.bleeding_enabled else 'disabled'}."
            )
        else:
            click.echo("Software mode.")
        groups = (
            (status.SoftSleepFlag, report.soft_sleep),
            (status.ShutdownFlag, report.shutdown),
            (status.CheckFlag, report.protection),
            (status.FetEnable, report.fet_disabled),
            (status.FetDisableReason, report.fet_disable_reasons),
        )
        for flag_type, names in groups:
            for name in names:
                click.echo(status.describe(flag_type[name.upper()]))
        for name in report.cleared:
            click.echo(f"Cleared {name} flag.")
        if report.charging:
            click.echo("Battery is charging.")
        elif ctx.obj.get("debug"):
            click.echo("Battery is not charging.")
        if report.discharging:
            click.echo("Battery is discharging.")
        elif ctx.obj.get("debug"):
            click.echo("Battery is not discharging.")


@cli.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """Decode the configuration stored in the EEPROM."""
    with open_device(ctx) as dev:
        cfg = dev.read_configuration()
        if ctx.obj.get("json_output"):
            click.echo(cfg.model_dump_json(indent=2))
            return

        cal = cfg.calibration
        th = cfg.thresholds
        click.echo(f"Factory:          {cfg.factory_name}")
        click.echo(f"Project:          {cfg.project_name} (version {cfg.version})")
        click.echo(f"Cells:            {cfg.cell_count}")
        click.echo(f"Mode:             {'hardware' if cfg.hardware_mode else 'software'}")
        click.echo(f"Bleeding:         {'enabled' if cfg.bleeding_enabled else 'disabled'}"
                   f"{' (idle)' if cfg.idle_bleeding else ''}")
        click.echo(f"Bleed start:      {cfg.bleed_start_mv:.2f} mV")
        click.echo(f"Sense resistor:   {cal.sense_resistor_mohm:.1f} mOhm")
        click.echo(f"Charge limit:     {cfg.charge_limit.amps:.2f} A "
                   f"(max {cfg.charge_limit.max_amps:.2f} A, offset {cal.charge_offset:+d})")
        click.echo(f"Discharge limit:  {cfg.discharge_limit.amps:.2f} A "
                   f"(max {cfg.discharge_limit.max_amps:.2f} A, offset {cal.discharge_offset:+d})")
        click.echo(f"OV threshold:     {th.ov_threshold_mv:.2f} mV (release {th.ov_release_mv:.2f} mV)")
        click.echo(f"UV threshold:     {th.uv_threshold_mv:.2f} mV (release {th.uv_release_mv:.2f} mV)")


@cli.command()
@click.pass_context
def reboot(ctx: click.Context) -> None:
    """Reboot the chip."""
    with open_device(ctx) as dev:
        dev.reboot()
        click.echo("Reboot requested.")


@cli.command("set-sense-resistor")
@click.argument("milliohms", type=float)
@click.pass_context
def set_sense_resistor(ctx: click.Context, milliohms: float) -> None:
    """Set the sense resistor calibration (0.1 - 25.5 mOhm)."""
    with open_device(ctx) as dev:
        dev.set_sense_resistor(milliohms)
        click.echo(f"Sense resistor set to {milliohms:.1f} mOhm.")


@cli.command("set-voltage-limits")
@click.option("--ov", type=float, default=None, help="Overvoltage threshold (mV)")
@click.option("--ov-release", type=float, default=None, help="Overvoltage release (mV)")
@click.option("--uv", type=float, default=None, help="Undervoltage threshold (mV)")
@click.option("--uv-release", type=float, default=None, help="Undervoltage release (mV)")
@click.pass_context
def set_voltage_limits(
    ctx: click.Context,
    ov: float | None,
    ov_release: float | None,
    uv: float | None,
    uv_release: float | None,
) -> None:
    """Set cell over/under-voltage thresholds."""
    if ov is None and ov_release is None and uv is None and uv_release is None:
        raise click.UsageError("Give at least one of --ov, --ov-release, --uv, --uv-release")
    with open_device(ctx) as dev:
        dev.set_voltage_limits(
            ov_threshold=ov, ov_release=ov_release,
            uv_threshold=uv, uv_release=uv_release,
        )
        click.echo("Voltage limits updated.")


# Register subcommand groups
from oz890.cli.eeprom import eeprom  # noqa: E402

cli.add_command(eeprom)


def main() -> None:
    """Console entry point: run the CLI, turning oz890 errors into exit status 1."""
    try:
        cli(standalone_mode=False)
    except click.exceptions.Exit as exc:
        sys.exit(exc.exit_code)
    except click.ClickException as exc:
        exc.show()
        sys.exit(exc.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)
    except Oz890Error as exc:
        logger.debug("command_failed", error=type(exc).__name__)
        click.echo(f"ERROR: {exc}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
