"""sparkrunner CLI."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from sparkrunner import __version__
from sparkrunner._constants import DEFAULT_CONFIG
from sparkrunner.config import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigValidationError,
    RunnerConfig,
    load_config,
    load_template,
)
from sparkrunner.k8s import K8sConnectionError, get_spark_client
from sparkrunner.spark import (
    ControllerError,
    JobLifecycleController,
    JobSpec,
    JobSpecBuilder,
    SubmissionError,
    compute_budget_gib,
)

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="sparkrunner",
    help="Submit and supervise Spark applications on Kubernetes",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    epilog="[dim]Workflow: render -> run[/dim]",
)

console = Console()


# =============================================================================
# Helper Functions
# =============================================================================


def resolve_config_path(config_file: Path | None) -> Path:
    """Resolve config file path, using ./sparkrunner.yaml as default."""
    if config_file is not None:
        return config_file

    default = Path(DEFAULT_CONFIG)
    if default.exists():
        return default

    print_error(f"No config file specified and ./{DEFAULT_CONFIG} not found")
    raise typer.Exit(1)


def setup_logging(verbose: bool) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # The kubernetes client logs every request at DEBUG
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]OK[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]ERROR[/red] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]...[/blue] {message}")


def _load_and_build(config_file: Path) -> tuple[RunnerConfig, JobSpec]:
    """Load config and template and build the job spec, exiting on config errors."""
    try:
        cfg = load_config(config_file)
        template = load_template(cfg.template)
        spec = JobSpecBuilder.from_config(cfg).build(template)
    except ConfigFileNotFoundError as e:
        print_error(str(e))
        raise typer.Exit(1)  # noqa: B904
    except ConfigValidationError as e:
        print_error("Config validation failed:")
        if e.errors:
            for err in e.errors:
                loc = ".".join(str(x) for x in err["loc"])
                console.print(f"  [red]•[/red] {loc}: {err['msg']}")
        else:
            console.print(f"  [red]•[/red] {e}")
        raise typer.Exit(1)  # noqa: B904
    except ConfigError as e:
        print_error(f"Config error: {e}")
        raise typer.Exit(1)  # noqa: B904
    return cfg, spec


# =============================================================================
# CLI Commands
# =============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"sparkrunner version {__version__}")


@app.command()
def render(
    config_file: Annotated[
        Path | None,
        typer.Argument(help="Path to configuration YAML file (default: ./sparkrunner.yaml)"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the SparkApplication to this file"),
    ] = None,
) -> None:
    """Build the SparkApplication without submitting it.

    Reads the config and template, applies executor sizing and the task-group
    budget, and prints the resulting manifest as YAML. No cluster access.
    """
    config_file = resolve_config_path(config_file)
    _, spec = _load_and_build(config_file)

    if output is not None:
        output.write_text(spec.to_yaml())
        print_success(f"Wrote SparkApplication {spec.name} to {output}")
    else:
        typer.echo(spec.to_yaml(), nl=False)


@app.command()
def budget(
    executor_memory_gib: Annotated[
        int,
        typer.Option("--executor-memory-gib", "-m", min=1, help="Executor heap in GiB"),
    ],
    overhead_mib: Annotated[
        int,
        typer.Option("--overhead-mib", min=0, help="spark.executor.memoryOverhead in MiB"),
    ] = 0,
    sidecar_mib: Annotated[
        int,
        typer.Option("--sidecar-mib", min=0, help="Sidecar container memory in MiB"),
    ] = 0,
    executors: Annotated[
        int,
        typer.Option("--executors", "-e", min=1, help="Executor count in the task group"),
    ] = 1,
) -> None:
    """Show the per-executor memory reservation for gang scheduling."""
    gib = compute_budget_gib(executor_memory_gib * 1024, overhead_mib, sidecar_mib)

    table = Table(title="Task group budget")
    table.add_column("Setting")
    table.add_column("Value", justify="right")
    table.add_row("Executor memory", f"{executor_memory_gib * 1024:,} MiB")
    table.add_row("Memory overhead", f"{overhead_mib:,} MiB")
    table.add_row("Sidecar memory", f"{sidecar_mib:,} MiB")
    table.add_row("minMember", str(executors))
    table.add_row("minResource.memory", f"{gib}Gi")
    table.add_row("Total reserved", f"{gib * executors:,} GiB")
    console.print(table)


@app.command()
def run(
    config_file: Annotated[
        Path | None,
        typer.Argument(help="Path to configuration YAML file (default: ./sparkrunner.yaml)"),
    ] = None,
    delete_on_finish: Annotated[
        bool | None,
        typer.Option(
            "--delete-on-finish/--keep",
            help="Delete the SparkApplication once finished (default: from config)",
        ),
    ] = None,
    poll_interval_ms: Annotated[
        int | None,
        typer.Option("--poll-interval-ms", min=1, help="Delay between phase checks"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
) -> None:
    """Submit the SparkApplication and wait for it to finish.

    Exits 0 when the application succeeds and 1 when it fails or cannot be
    submitted or polled.
    """
    setup_logging(verbose)
    config_file = resolve_config_path(config_file)
    cfg, spec = _load_and_build(config_file)

    lifecycle = cfg.lifecycle
    if delete_on_finish is not None:
        lifecycle.delete_on_finish = delete_on_finish
    if poll_interval_ms is not None:
        lifecycle.poll_interval_ms = poll_interval_ms

    k8s = cfg.kubernetes
    try:
        client = get_spark_client(
            kubeconfig=k8s.kubeconfig,
            context=k8s.context,
            namespace=k8s.namespace or spec.namespace,
        )
    except K8sConnectionError as e:
        print_error(str(e))
        raise typer.Exit(1)  # noqa: B904

    console.print(
        Panel(
            f"Running [bold]{spec.name}[/bold] in namespace [bold]{client.namespace}[/bold]",
            expand=False,
        )
    )

    controller = JobLifecycleController.from_config(client, spec, lifecycle)
    try:
        outcome = controller.run()
    except SubmissionError as e:
        print_error(str(e))
        if e.body:
            console.print(e.body, markup=False, highlight=False)
        raise typer.Exit(1)  # noqa: B904
    except ControllerError as e:
        print_error(str(e))
        raise typer.Exit(1)  # noqa: B904

    if outcome == 0:
        print_success(f"{spec.name} succeeded")
        raise typer.Exit(0)
    print_error(f"{spec.name} finished with state {controller.state.value}")
    raise typer.Exit(1)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
