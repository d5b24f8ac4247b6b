"""
ConfigGuard CLI - Check Command
"""
import click

from configguard.core.exceptions import ConfigurationError
from configguard.core.scanner import default_registry


@click.command()
@click.argument("value")
@click.option("--scanner", "scanner_name", default=None, help="Scanner to use (default from config)")
@click.pass_context
def check(ctx, value: str, scanner_name):
    """🔍 Check whether a single value looks like a secret."""
    config = ctx.obj['config']
    registry = default_registry(default=config.default_scanner)
    try:
        scanner = registry.get(scanner_name)
    except ConfigurationError as e:
        raise click.ClickException(e.message)

    if not scanner.is_secret(value):
        click.echo("✅ No secret detected")
        return

    severity = scanner.detect_severity(value)
    click.echo(f"⚠️  Secret detected by {scanner.name} (severity: {severity.value})")
    ctx.exit(1)
