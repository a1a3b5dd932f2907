from __future__ import annotations
import asyncio
import functools
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Type, TypeVar

import click
import orjson

from Kontour.config import AppConfig, AppPaths
from Kontour.core.exceptions import ClientCreationError, KontourError
from Kontour.core.kubeconfig_registry import KubeconfigRegistry
from Kontour.core.kubernetes_client import ClientFactory, KubernetesClient
from Kontour.core.reload_context import ReloadContext
from Kontour.logger import setup_logging
from Kontour.models.base import WorkloadRow, filter_by_status
from Kontour.models.workloads import WORKLOAD_MODELS, get_workload_model
from Kontour.utils import delete_kubeconfig_file, get_kubeconfig_storage_dir

T = TypeVar("T")

OUTPUT_FORMATS = click.Choice(["table", "json"])


@dataclass
class CliState:
    config: AppConfig
    registry: KubeconfigRegistry
    storage_dir: Path


def _reports_errors(func: Callable[..., T]) -> Callable[..., T]:
    """Turns Kontour errors into a one-line message and a non-zero exit code."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return func(*args, **kwargs)
        except KontourError as e:
            raise click.ClickException(str(e)) from e

    return wrapper


def _echo_json(payload: Any) -> None:
    click.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())


async def _run_with_client(
    state: CliState, selector: str, func: Callable[[KubernetesClient], Awaitable[T]]
) -> T:
    context = ReloadContext(ClientFactory(state.registry, state.config), selector=selector)
    try:
        await context.reload()
        await context.wait()
        if context.client is None:
            raise context.last_error or ClientCreationError(selector)
        return await func(context.client)
    finally:
        await context.aclose()


def _cell(row: WorkloadRow, column: Dict[str, Any]) -> str:
    if column["is_age"]:
        return row.age
    value = getattr(row, column["key"])
    if column["key"] == "status":
        return row.status.label  # type: ignore[attr-defined]
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return str(value)


def _render_table(model: Type[WorkloadRow], rows: Sequence[WorkloadRow]) -> None:
    columns = model.get_columns()
    click.secho(f"{model.display_name} ({len(rows)})", bold=True)
    header = "  ".join(str(c["label"]).ljust(c["width"] or 10) for c in columns)
    click.echo(header)
    for row in rows:
        click.echo("  ".join(_cell(row, c).ljust(c["width"] or 10) for c in columns))
    click.echo()


def _row_to_dict(row: WorkloadRow) -> Dict[str, Any]:
    data: Dict[str, Any] = {"kind": row.kind}
    for key in row.get_column_keys():
        data[key] = getattr(row, key)
    data["status"] = row.status.value
    data["status_label"] = row.status.label  # type: ignore[attr-defined]
    data["age"] = row.age
    return data


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option("--log-level", envvar="KONTOUR_LOG_LEVEL", help="Logging level.")
@click.option(
    "--home",
    envvar="KONTOUR_HOME",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding the .kontour storage folder.",
)
@click.pass_context
@_reports_errors
def main(ctx: click.Context, log_level: Optional[str], home: Optional[Path]) -> None:
    """Read-only Kubernetes workload and cluster overview."""
    paths = AppPaths(home)
    app_config = (
        AppConfig(log_level=log_level, paths=paths) if log_level else AppConfig(paths=paths)
    )
    setup_logging(config=app_config)

    storage_dir = get_kubeconfig_storage_dir(paths)
    registry = KubeconfigRegistry()
    registry.load_storage_dir(storage_dir)
    ctx.obj = CliState(config=app_config, registry=registry, storage_dir=storage_dir)


@main.command("import")
@click.argument("name")
@click.argument("kubeconfig", type=click.File("r"))
@click.pass_obj
@_reports_errors
def import_kubeconfig(state: CliState, name: str, kubeconfig: Any) -> None:
    """Store KUBECONFIG (a file or - for stdin) under NAME."""
    file_path = state.registry.import_file(name, kubeconfig.read(), state.storage_dir)
    click.echo(f"Imported '{name}' -> {file_path}")


@main.command("list")
@click.option("--output", "-o", type=OUTPUT_FORMATS, default="table")
@click.pass_obj
@_reports_errors
def list_kubeconfigs(state: CliState, output: str) -> None:
    """List registered kubeconfigs."""
    entries = {name: state.registry.get(name) for name in state.registry.list_names()}
    if output == "json":
        _echo_json(entries)
        return
    if not entries:
        click.echo("No kubeconfigs registered.")
        return
    for name, file_path in entries.items():
        click.echo(f"{name}\t{file_path}")


@main.command("remove")
@click.argument("name")
@click.pass_obj
@_reports_errors
def remove_kubeconfig(state: CliState, name: str) -> None:
    """Unregister NAME and delete its stored copy."""
    file_path = state.registry.forget(name, state.storage_dir)
    if file_path is None:
        raise click.ClickException(f"Kubeconfig not found: {name}")
    still_used = any(
        state.registry.get(other) == file_path for other in state.registry.list_names()
    )
    if Path(file_path).parent == state.storage_dir.resolve() and not still_used:
        delete_kubeconfig_file(file_path)
    click.echo(f"Removed '{name}'")


@main.command("workloads")
@click.option("--context", "selector", help="Registered name, kubeconfig path or 'default'.")
@click.option("--namespace", "-n", help="Namespace to list; all namespaces when omitted.")
@click.option(
    "--kind",
    "kinds",
    multiple=True,
    type=click.Choice(list(WORKLOAD_MODELS), case_sensitive=False),
    help="Workload kind(s) to list; all kinds when omitted.",
)
@click.option("--status", help="Only show workloads with this status or status label.")
@click.option("--output", "-o", type=OUTPUT_FORMATS, default="table")
@click.pass_obj
@_reports_errors
def list_workloads(
    state: CliState,
    selector: Optional[str],
    namespace: Optional[str],
    kinds: Sequence[str],
    status: Optional[str],
    output: str,
) -> None:
    """List workloads with their canonical status."""
    models = [get_workload_model(k) for k in kinds] or list(WORKLOAD_MODELS.values())

    async def collect(api_client: KubernetesClient) -> List[List[WorkloadRow]]:
        return [await api_client.list_workloads(model, namespace) for model in models]

    results = asyncio.run(
        _run_with_client(state, selector or state.config.default_selector, collect)
    )
    filtered = [filter_by_status(rows, status) for rows in results]

    if output == "json":
        _echo_json([_row_to_dict(row) for rows in filtered for row in rows])
        return
    for model, rows in zip(models, filtered):
        _render_table(model, rows)


@main.command("usage")
@click.option("--context", "selector", help="Registered name, kubeconfig path or 'default'.")
@click.option("--hotspots", is_flag=True, help="Also list pods running far from their limits.")
@click.option("--output", "-o", type=OUTPUT_FORMATS, default="table")
@click.pass_obj
@_reports_errors
def show_usage(
    state: CliState, selector: Optional[str], hotspots: bool, output: str
) -> None:
    """Summarise cluster capacity, usage and health."""

    async def collect(api_client: KubernetesClient) -> Dict[str, Any]:
        usage = await api_client.fetch_cluster_usage()
        found = await api_client.fetch_resource_hotspots() if hotspots else []
        return {"usage": usage, "hotspots": found}

    result = asyncio.run(
        _run_with_client(state, selector or state.config.default_selector, collect)
    )
    usage = result["usage"]

    if output == "json":
        payload = asdict(usage)
        payload["cpu_percent"] = usage.cpu_percent
        payload["memory_percent"] = usage.memory_percent
        if hotspots:
            payload["hotspots"] = [asdict(h) for h in result["hotspots"]]
        _echo_json(payload)
        return

    cluster_status = usage.cluster_status
    click.secho(f"Cluster: {cluster_status.status} ({cluster_status.message})", bold=True)
    click.echo(
        f"CPU:     {usage.cpu_used:.2f} / {usage.cpu_total:.2f} cores "
        f"({usage.cpu_percent:.1f}%)"
    )
    click.echo(
        f"Memory:  {usage.memory_used:.2f} / {usage.memory_total:.2f} GiB "
        f"({usage.memory_percent:.1f}%)"
    )
    click.echo(
        f"Storage: {usage.storage_allocatable:.2f} GiB allocatable of "
        f"{usage.storage_total:.2f} GiB"
    )
    click.echo(
        f"Nodes: {usage.node_count}  Pods: {usage.running_pods}/{usage.pod_count} running  "
        f"Namespaces: {usage.namespace_count}"
    )
    if hotspots:
        click.echo()
        if not result["hotspots"]:
            click.echo("No resource hotspots.")
        for h in result["hotspots"]:
            click.echo(
                f"[{h.severity}] {h.namespace}/{h.name}: {h.hotspot_type} "
                f"(cpu {h.cpu_usage:.1f}%, memory {h.memory_usage:.1f}%)"
            )


if __name__ == "__main__":
    main()
