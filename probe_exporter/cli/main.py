"""Main CLI entrypoint for probe-exporter."""

import functools
import json
import logging
import os
import sys

import click

from ..cleanup import GarbageCollector
from ..config import (
    DEFAULT_GC_INTERVAL,
    DEFAULT_GC_MAX_AGE,
    DEFAULT_MAX_TIMEOUT,
    DEFAULT_TIMEOUT,
    ExporterConfig,
    parse_duration,
    split_listen_address,
)
from ..errors import ConfigurationError
from ..orchestrator import ProbeOrchestrator, default_provider_factory
from ..provider import present_credential_variables

logger = logging.getLogger(__name__)

ENV_PREFIX = "PROBE_EXPORTER_"


class Duration(click.ParamType):
    """Click parameter accepting durations such as 59s, 1m or 1m30s."""

    name = "duration"

    def convert(self, value, param, ctx):
        if isinstance(value, (int, float)):
            return float(value)
        try:
            return parse_duration(value)
        except ValueError:
            self.fail(f"{value!r} is not a valid duration", param, ctx)


DURATION = Duration()


def _env(name: str) -> str:
    return ENV_PREFIX + name.upper().replace("-", "_")


def config_options(func):
    """Options shared by every command that builds an ExporterConfig."""
    options = [
        click.option("--timeout", type=DURATION, default=DEFAULT_TIMEOUT, envvar=_env("timeout"),
                     show_default=True, help="Default timeout for a scrape"),
        click.option("--max-timeout", type=DURATION, default=DEFAULT_MAX_TIMEOUT, envvar=_env("max-timeout"),
                     show_default=True, help="Upper bound for a per-request timeout override"),
        click.option("--region", envvar=_env("region"), help="AWS region (defaults to the AWS environment)"),
        click.option("--flavor", default="t3.small", envvar=_env("flavor"), show_default=True,
                     help="Instance type of the probe instance"),
        click.option("--image", envvar=_env("image"), help="Image (AMI) id of the probe instance"),
        click.option("--internal-network", envvar=_env("internal-network"), help="Subnet id for the instance"),
        click.option("--external-network", default="amazon", envvar=_env("external-network"), show_default=True,
                     help="Public IPv4 pool for the instance address"),
        click.option("--security-group", envvar=_env("security-group"), help="Security group allowing SSH"),
        click.option("--user", default="ubuntu", envvar=_env("user"), show_default=True,
                     help="Username used for sshing into the instance"),
        click.option("--command", "remote_command", default="uname -a", envvar=_env("command"), show_default=True,
                     help="Command run on the instance"),
        click.option("--payload-size", type=click.IntRange(min=1), default=64 * 1024, envvar=_env("payload-size"),
                     show_default=True, help="Size in bytes of the object store payload"),
        click.option("--disable-instance", is_flag=True, envvar=_env("disable-instance"), help="Disable the instance probe"),
        click.option("--disable-objectstore", is_flag=True, envvar=_env("disable-objectstore"),
                     help="Disable the object store probe"),
        click.option("--gc-interval", type=DURATION, default=DEFAULT_GC_INTERVAL, envvar=_env("gc-interval"),
                     show_default=True, help="Pause between garbage collector sweeps"),
        click.option("--gc-max-age", type=DURATION, default=DEFAULT_GC_MAX_AGE, envvar=_env("gc-max-age"),
                     show_default=True, help="Age after which a tagged resource is deleted"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_config(**kwargs) -> ExporterConfig:
    """Turn parsed CLI options into a validated ExporterConfig."""
    config = ExporterConfig(
        request_timeout=kwargs["timeout"],
        max_request_timeout=kwargs["max_timeout"],
        region=kwargs.get("region"),
        flavor=kwargs["flavor"],
        image=kwargs.get("image"),
        internal_network=kwargs.get("internal_network"),
        external_network=kwargs["external_network"],
        security_group=kwargs.get("security_group"),
        user=kwargs["user"],
        command=kwargs["remote_command"],
        payload_size=kwargs["payload_size"],
        enable_instance=not kwargs["disable_instance"],
        enable_objectstore=not kwargs["disable_objectstore"],
        gc_enabled=not kwargs.get("disable_gc", False),
        gc_interval=kwargs["gc_interval"],
        gc_max_age=kwargs["gc_max_age"],
        listen_address=kwargs.get("listen", "127.0.0.1:9539"),
    )
    try:
        return config.validate()
    except ConfigurationError as e:
        raise click.UsageError(str(e))


CONFIG_KEYS = (
    "timeout", "max_timeout", "region", "flavor", "image", "internal_network", "external_network",
    "security_group", "user", "remote_command", "payload_size", "disable_instance", "disable_objectstore",
    "gc_interval", "gc_max_age",
)


def with_config(func):
    """Build the config from the shared options and pass it as ``config``."""
    @config_options
    @functools.wraps(func)
    def wrapper(**kwargs):
        settings = {key: kwargs.pop(key) for key in CONFIG_KEYS}
        settings["listen"] = kwargs.get("listen", "127.0.0.1:9539")
        settings["disable_gc"] = kwargs.get("disable_gc", False)
        return func(config=build_config(**settings), **kwargs)
    return wrapper


def _require_image(config: ExporterConfig) -> None:
    if config.enable_instance and not config.image:
        raise click.UsageError("--image is required unless --disable-instance is given")


def _log_environment() -> None:
    present = present_credential_variables(os.environ)
    if present:
        logger.info(f"Provider environment: {', '.join(present)}")
    else:
        logger.warning("No AWS environment variables set, relying on the default credential chain")


@click.group()
@click.option("--log-level", type=click.Choice(["debug", "info", "warning", "error"]), default="info",
              envvar=_env("log-level"), show_default=True, help="Logging verbosity")
@click.version_option(package_name="probe-exporter")
def main(log_level: str):
    """probe-exporter - Synthetic cloud probes exposed as Prometheus metrics."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(filename)s:%(lineno)d %(message)s",
    )


@main.command()
@click.option("--listen", default="127.0.0.1:9539", envvar=_env("listen"), show_default=True,
              help="Address to listen on")
@click.option("--disable-gc", is_flag=True, envvar=_env("disable-gc"), help="Do not run the garbage collector")
@with_config
def serve(config: ExporterConfig, listen: str, disable_gc: bool):
    """
    Start the exporter.
    """
    import uvicorn
    from ..api import create_app

    _require_image(config)
    _log_environment()

    garbage_collector = None
    if config.gc_enabled:
        garbage_collector = GarbageCollector(config, default_provider_factory(config))

    app = create_app(config, garbage_collector=garbage_collector)
    host, port = split_listen_address(config.listen_address)

    click.echo(f"Starting probe-exporter on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_config=None)


@main.command("probe")
@with_config
def probe_cmd(config: ExporterConfig):
    """
    Run one probe round and print the resulting metrics.
    """
    from prometheus_client import generate_latest

    _require_image(config)
    _log_environment()

    orchestrator = ProbeOrchestrator(config, runtime_metrics=False)
    result = orchestrator.handle_scrape()

    click.echo(generate_latest(result.registry).decode("utf-8"), nl=False)

    if not all(run.outcome.value == "success" for run in result.runs):
        sys.exit(1)


@main.command("gc")
@click.option("--dry-run", is_flag=True, help="List expired resources without deleting them")
@click.option("--json", "output_json", is_flag=True, help="Output machine-readable JSON")
@with_config
def gc_cmd(config: ExporterConfig, dry_run: bool, output_json: bool):
    """
    Run a single garbage collector sweep now.
    """
    collector = GarbageCollector(config, default_provider_factory(config))
    result = collector.sweep(dry_run=dry_run)

    if output_json:
        click.echo(json.dumps({
            "scanned": result.scanned,
            "candidates": result.candidates,
            "expired": result.expired,
            "deleted": result.deleted,
            "failed": result.failed,
            "dry_run": dry_run,
        }))
    else:
        click.echo(f"Scanned {result.scanned} resources, {result.candidates} tagged, {result.expired} expired")
        if dry_run:
            click.echo("Dry run: nothing deleted")
        else:
            click.echo(f"Deleted {result.deleted}, failed {result.failed}")

    if result.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
