"""clusterup command line interface."""
import logging
from pathlib import Path
from typing import List, Optional

import typer

from .config import BootstrapConfig, find_config_file
from .errors import BootstrapError
from .log import setup_logging
from .orchestrator import Orchestrator
from .steps import STEP_NAMES, PreflightCheck, VerifyCluster, WorkerJoin

logger = logging.getLogger("clusterup.cli")

app = typer.Typer(help="Bootstrap a kubeadm Kubernetes cluster node by node.")
config_app = typer.Typer(help="Inspect or create the configuration file.")
app.add_typer(config_app, name="config")


class State:
    """Options shared by every command."""
    config_path: Optional[Path] = None
    debug: bool = False
    dry_run: bool = False


state = State()


def load_config() -> BootstrapConfig:
    """Load configuration and apply global CLI overrides."""
    config = BootstrapConfig.load(state.config_path)
    if state.dry_run:
        config = config.model_copy(update={"dry_run": True})
    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        max_size_mb=config.logging.max_size_mb,
        backup_count=config.logging.backup_count,
        debug=state.debug,
    )
    return config


def fail(error: Exception) -> None:
    """Report a fatal error on stderr and exit non-zero."""
    logger.debug("Fatal error", exc_info=True)
    typer.secho(f"ERROR: {error}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=getattr(error, "exit_code", 1))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", envvar="CLUSTERUP_CONFIG",
                                          help="Path to configuration YAML"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log mutating commands without running them"),
):
    """Provision this machine for its role in the cluster (default: up)."""
    state.config_path = config
    state.debug = debug
    state.dry_run = dry_run
    setup_logging(debug=debug)
    if ctx.invoked_subcommand is None:
        up(skip=[], join_workers=False)


@app.command("up")
def up(
    skip: List[str] = typer.Option([], "--skip", help=f"Skip a step ({', '.join(STEP_NAMES)})"),
    join_workers: bool = typer.Option(False, "--join-workers", help="Join workers over SSH when done"),
):
    """Run every step for this node's role."""
    unknown = [name for name in skip if name not in STEP_NAMES]
    if unknown:
        raise typer.BadParameter(
            f"unknown step(s) {', '.join(unknown)}; choose from {', '.join(STEP_NAMES)}",
            param_hint="--skip",
        )
    try:
        config = load_config()
        if skip:
            config = config.model_copy(update={"skip_steps": tuple(config.skip_steps) + tuple(skip)})
        orchestrator = Orchestrator(config, join_workers=join_workers or None)
        report = orchestrator.run()
    except BootstrapError as e:
        fail(e)
    logger.info(f"Cluster setup completed successfully! ({len(report.step_names)} steps in {report.elapsed:.0f}s)")


@app.command("preflight")
def preflight():
    """Only check privileges, sudo and reachability of every node."""
    try:
        Orchestrator(load_config()).run_step(PreflightCheck())
    except BootstrapError as e:
        fail(e)


@app.command("join-workers")
def join_workers(
    policy: Optional[str] = typer.Option(None, "--policy", help="On failure: continue | abort"),
):
    """Copy the join command to every worker over SSH and run it."""
    if policy not in (None, "continue", "abort"):
        raise typer.BadParameter("policy must be 'continue' or 'abort'", param_hint="--policy")
    try:
        Orchestrator(load_config()).run_step(WorkerJoin(failure_policy=policy))
    except BootstrapError as e:
        fail(e)


@app.command("verify")
def verify():
    """Wait for nodes to become Ready and print cluster status."""
    try:
        Orchestrator(load_config()).run_step(VerifyCluster())
    except BootstrapError as e:
        fail(e)


@config_app.command("show")
def config_show():
    """Print the effective configuration."""
    try:
        config = load_config()
    except BootstrapError as e:
        fail(e)
    source = find_config_file(state.config_path)
    typer.echo(f"# source: {source or 'default values'}")
    typer.echo(config.to_yaml(), nl=False)


@config_app.command("init")
def config_init(
    output: Path = typer.Option(Path("clusterup.yaml"), "--output", "-o", help="Where to write the file"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
):
    """Write a configuration file with default values."""
    if output.exists() and not force:
        typer.secho(f"File already exists: {output} (use --force to overwrite)", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    path = BootstrapConfig().save(output)
    typer.echo(f"✅ Created configuration file: {path}")


if __name__ == "__main__":
    app()
