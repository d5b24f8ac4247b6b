"""
ConfigGuard CLI - Reconcile Command

Loads ConfigMaps, Secrets, ScanPolicies and existing ExposedSecrets from
manifest files into an in-memory store, runs one reconciliation pass per
ConfigMap and reports the outcome.
"""
import asyncio
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from configguard.core.exceptions import ConfigGuardError, PartialReconcileError
from configguard.core.models import SourceResource
from configguard.core.policy import PolicyResolver
from configguard.core.reconciler import ReconcileResult, SourceReconciler, reconcile_with_deadline
from configguard.core.scanner import default_registry
from configguard.store.manifests import dump_manifests, load_manifests
from configguard.store.memory import InMemoryStore

PHASE_STYLE = {
    "Detected": "yellow",
    "Remediated": "green",
    "Ignored": "dim",
}


async def _reconcile_all(
    reconciler: SourceReconciler,
    targets: List[Tuple[str, str]],
    timeout: Optional[float],
) -> Tuple[List[ReconcileResult], List[Tuple[str, str, ConfigGuardError]]]:
    results = []
    failures = []
    for namespace, name in targets:
        try:
            results.append(await reconcile_with_deadline(reconciler, namespace, name, timeout))
        except PartialReconcileError as e:
            results.append(e.result)
            failures.append((namespace, name, e))
        except ConfigGuardError as e:
            failures.append((namespace, name, e))
    return results, failures


def _results_table(results: List[ReconcileResult]) -> Table:
    table = Table(title="ExposedSecrets")
    table.add_column("Namespace")
    table.add_column("ConfigMap")
    table.add_column("Key")
    table.add_column("Action")
    table.add_column("Phase")
    table.add_column("Severity")
    table.add_column("Secret")

    for result in results:
        for outcome in result.outcomes:
            phase = outcome.phase.value
            table.add_row(
                result.namespace,
                result.name,
                outcome.key,
                outcome.action.value,
                f"[{PHASE_STYLE.get(phase, 'white')}]{phase}[/]",
                outcome.severity.value,
                outcome.credential or "-",
            )
    return table


@click.command()
@click.option(
    "--filename", "-f", "filenames",
    type=click.Path(exists=True, dir_okay=False),
    multiple=True,
    required=True,
    help="Manifest file(s) with ConfigMaps, ScanPolicies, Secrets and ExposedSecrets"
)
@click.option("--namespace", "-n", default=None, help="Only reconcile ConfigMaps in this namespace")
@click.option("--name", default=None, help="Only reconcile the ConfigMap with this name")
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Write every object after reconciliation to this YAML file"
)
@click.option("--fail-fast/--keep-going", default=None, help="Abort a pass on the first failing key")
@click.option("--timeout", type=float, default=None, help="Deadline in seconds for each pass")
@click.pass_context
def reconcile(ctx, filenames, namespace: Optional[str], name: Optional[str],
              output: Optional[str], fail_fast: Optional[bool], timeout: Optional[float]):
    """🔄 Reconcile ConfigMaps against their namespace ScanPolicy."""
    config = ctx.obj['config']
    console = Console()

    try:
        store = InMemoryStore(load_manifests(filenames))
        registry = default_registry(default=config.default_scanner)
        reconciler = SourceReconciler(
            store,
            registry,
            policy_resolver=PolicyResolver(store, registry, config.scan_policy()),
            fail_fast=config.fail_fast if fail_fast is None else fail_fast,
        )
    except ConfigGuardError as e:
        raise click.ClickException(e.message)

    targets = [
        (obj.metadata.namespace, obj.metadata.name)
        for obj in store.objects()
        if isinstance(obj, SourceResource)
        and (namespace is None or obj.metadata.namespace == namespace)
        and (name is None or obj.metadata.name == name)
    ]
    if not targets:
        click.echo("No ConfigMaps matched")
        return

    results, failures = asyncio.run(
        _reconcile_all(reconciler, targets, timeout if timeout is not None else config.reconcile_timeout)
    )

    if any(result.outcomes for result in results):
        console.print(_results_table(results))
    else:
        click.echo("\n✅ No secret-like values found!")

    reconciled = sum(1 for result in results if result.succeeded)
    click.echo(f"\nReconciled {reconciled} of {len(targets)} ConfigMap(s)")
    for failed_namespace, failed_name, error in failures:
        click.echo(f"❌ {failed_namespace}/{failed_name}: {error.message}", err=True)

    if output:
        with open(output, 'w') as f:
            f.write(dump_manifests(store.objects()))
        click.echo(f"📄 Wrote {len(store)} object(s) to {output}")

    if failures:
        ctx.exit(1)
