"""
ConfigGuard CLI - Main entry point
"""
import click
import yaml

from configguard import __version__
from configguard.cli import check, reconcile
from configguard.utils.config import ConfigManager
from configguard.utils.logger import get_logger


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to config file (default: ~/.config/configguard/config.yaml)"
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override the configured log level"
)
@click.pass_context
def cli(ctx, config_path, log_level):
    """
    🛡️  ConfigGuard - Leaked credential detection for ConfigMaps

    Finds secret-like values in ConfigMaps, records each one as an
    ExposedSecret, and reports, ignores or moves it into a Secret according
    to the namespace ScanPolicy.

    WORKFLOW:

    1. Check a single value:
       configguard check 'AKIA...'

    2. Reconcile ConfigMaps from manifests:
       configguard reconcile -f cluster.yaml --output result.yaml
    """
    ctx.ensure_object(dict)
    manager = ConfigManager(config_path)
    config = manager.load()
    if log_level:
        config.log_level = log_level.upper()
    get_logger("configguard", config.log_level)

    ctx.obj['config_manager'] = manager
    ctx.obj['config'] = config


@cli.group("config")
def config_group():
    """⚙️  Inspect configuration."""
    pass


@config_group.command("show")
@click.pass_context
def config_show(ctx):
    """Print the effective configuration."""
    config = ctx.obj['config']
    click.echo(f"# {ctx.obj['config_manager'].config_path}")
    click.echo(yaml.safe_dump(config.to_dict(), sort_keys=False), nl=False)


# Register subcommands
cli.add_command(reconcile.reconcile)
cli.add_command(check.check)


if __name__ == '__main__':
    cli()
