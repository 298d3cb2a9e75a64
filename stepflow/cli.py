"""Command line interface for running provisioning plans."""

from __future__ import annotations

import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

import typer

from stepflow.collaborators import SubprocessCommandRunner
from stepflow.config import StepflowConfig, load_config
from stepflow.contracts import Outcome, ReportEntry, RunReport, RunStatus
from stepflow.errors import CommandFailed, MarkerStoreIOError, PlanError
from stepflow.markers import MarkerStore, get_marker_store
from stepflow.plan import Plan, PlanCompiler, load_plan
from stepflow.sequencer import Sequencer

app = typer.Typer(help="CLI for resumable provisioning plans")

_FAILURE_OUTCOMES = {Outcome.FATAL_FAILURE, Outcome.RECOVERABLE_FAILURE}


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    plan: Optional[Path] = typer.Option(
        None, "--plan", "-p", help="Plan file (default: from config, stepflow.yaml)"
    ),
    config: Optional[Path] = typer.Option(None, "--config", help="Configuration file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """
    Stepflow CLI entry point.

    Without a command, runs every pending step of the plan, the same as
    ``stepflow run``.
    """
    try:
        cfg = load_config(str(config) if config else None)
    except PlanError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    logging.basicConfig(
        level=logging.DEBUG if verbose else cfg.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {
        "config": cfg,
        "config_path": config,
        "plan_path": plan or Path(cfg.plan),
    }
    if ctx.invoked_subcommand is None:
        _run_plan(ctx.obj)


@app.command("run")
def run(
    ctx: typer.Context,
    only: Optional[List[str]] = typer.Option(
        None, "--only", help="Run only the named step (repeatable)"
    ),
    keep_markers: bool = typer.Option(
        False, "--keep-markers", help="Keep completion markers after a successful run"
    ),
    serve: Optional[bool] = typer.Option(
        None, "--serve/--no-serve", help="Start the plan's serve command afterwards"
    ),
) -> None:
    """
    Run all pending steps of the plan.

    Steps with a completion marker are skipped, so re-running after a failure
    resumes from the first incomplete step. A fully successful run clears the
    markers unless --keep-markers is given.

    Example:
        stepflow run
        stepflow --plan guides/laravel_cart.yaml run --keep-markers
        stepflow run --only env_setup --only initial_migrations
    """
    _run_plan(ctx.obj, only=only or None, keep_markers=keep_markers, serve=serve)


@app.command("status")
def status(ctx: typer.Context) -> None:
    """
    Show which plan steps are complete and which step would run next.

    Example:
        stepflow status
        # Output: install_laravel    DONE
        #         db_setup           DONE [sqlite]
        #         cart_migration     PENDING
        #         Next step would be: cart_migration - Creating cart model
    """
    plan = _load_plan(ctx.obj)
    store = _marker_store(ctx.obj)
    width = max((len(name) for name in plan.step_names()), default=0)
    next_step = None
    try:
        for spec in plan.steps:
            marker = store.get(spec.name)
            if marker is None:
                next_step = next_step or spec
                typer.echo(f"{spec.name:<{width}}  PENDING")
            else:
                suffix = f" [{marker.alternative}]" if marker.alternative else ""
                typer.echo(f"{spec.name:<{width}}  DONE{suffix}")
    except MarkerStoreIOError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if next_step is None:
        typer.echo("All steps completed.")
    else:
        typer.echo(f"Next step would be: {next_step.name} - {next_step.description or next_step.name}")


@app.command("reset")
def reset(
    ctx: typer.Context,
    steps: Optional[List[str]] = typer.Argument(None, help="Steps whose markers to clear"),
    from_step: Optional[str] = typer.Option(
        None, "--from", help="Clear this step and every later step"
    ),
    all_steps: bool = typer.Option(False, "--all", help="Clear every marker"),
) -> None:
    """
    Clear completion markers so steps run again.

    Example:
        stepflow reset cart_controller
        stepflow reset --from seed_products
        stepflow reset --all
    """
    plan = _load_plan(ctx.obj)
    names = plan.step_names()
    requested = list(steps or [])
    if from_step is not None:
        if from_step not in names:
            _unknown_steps([from_step], names)
        requested.extend(names[names.index(from_step):])

    unknown = [name for name in requested if name not in names]
    if unknown:
        _unknown_steps(unknown, names)
    if not requested and not all_steps:
        typer.secho("Specify step names, --from STEP or --all", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    store = _marker_store(ctx.obj)
    try:
        if all_steps:
            store.reset()
            typer.echo("Cleared all completion markers")
        else:
            cleared = list(dict.fromkeys(requested))
            store.reset(cleared)
            typer.echo(f"Cleared markers: {', '.join(cleared)}")
    except MarkerStoreIOError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


@app.command("steps")
def list_steps(ctx: typer.Context) -> None:
    """List the plan's steps in execution order."""
    plan = _load_plan(ctx.obj)
    typer.echo(f"Plan {plan.name}: {len(plan.steps)} steps")
    for index, spec in enumerate(plan.steps, start=1):
        line = f"{index:>2}. {spec.name}"
        if spec.description:
            line += f" - {spec.description}"
        typer.echo(line)
        if spec.alternatives:
            typer.echo(f"    Alternatives: {', '.join(alt.name for alt in spec.alternatives)}")


# ----------------------------------------------------------------------
def _load_plan(obj: dict) -> Plan:
    try:
        return load_plan(obj["plan_path"])
    except PlanError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _marker_store(obj: dict) -> MarkerStore:
    config: StepflowConfig = obj["config"]
    try:
        if obj["config_path"] is not None:
            return get_marker_store(config=config)
        return get_marker_store()
    except (MarkerStoreIOError, ValueError) as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _unknown_steps(unknown: List[str], names: List[str]) -> None:
    typer.secho(f"Unknown step: {', '.join(unknown)}", fg=typer.colors.RED)
    typer.echo(f"Valid steps: {', '.join(names)}")
    raise typer.Exit(code=1)


def _echo_entry(entry: ReportEntry) -> None:
    if entry.outcome in _FAILURE_OUTCOMES:
        for attempt in entry.attempts:
            typer.echo(f"  tried {attempt.name}: {attempt.reason}")
        typer.secho(entry.render(), fg=typer.colors.RED)
    else:
        typer.echo(entry.render())


def _echo_summary(report: RunReport, plan: Plan) -> None:
    if report.status == RunStatus.PREREQUISITES_MISSING:
        hints = {spec.name: spec.hint for spec in plan.requires}
        typer.secho("Error: Missing required components:", fg=typer.colors.RED)
        for name in report.missing_requirements:
            hint = hints.get(name)
            typer.echo(f" - {name}" + (f" ({hint})" if hint else ""))
        return

    if report.completed:
        typer.secho(report.summary(), fg=typer.colors.GREEN)
        if report.markers_reset:
            typer.echo("Completion markers cleared.")
        if report.cleanup_error:
            typer.secho(
                f"Warning: completion markers were not cleared: {report.cleanup_error}",
                fg=typer.colors.YELLOW,
            )
        return

    typer.secho(report.summary(), fg=typer.colors.RED)


def _run_plan(
    obj: dict,
    only: Optional[List[str]] = None,
    keep_markers: bool = False,
    serve: Optional[bool] = None,
) -> None:
    config: StepflowConfig = obj["config"]
    plan = _load_plan(obj)
    if only:
        unknown = [name for name in only if name not in plan.step_names()]
        if unknown:
            _unknown_steps(unknown, plan.step_names())

    compiler = PlanCompiler(plan, runner=SubprocessCommandRunner(timeout=config.command_timeout))
    sequencer = Sequencer(
        compiler.steps(),
        _marker_store(obj),
        requirements=compiler.requirements(),
        reset_on_success=config.reset_on_success and not keep_markers,
    )
    context = compiler.context()

    typer.echo(f"Running plan {plan.name} ({len(plan.steps)} steps)")
    handlers = {
        sig: signal.signal(sig, lambda *_: sequencer.cancel())
        for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        report = sequencer.run(context, only=only, on_entry=_echo_entry)
    finally:
        for sig, handler in handlers.items():
            signal.signal(sig, handler)

    _echo_summary(report, plan)
    for key, value in context.variables.items():
        typer.echo(f"{key}: {value}")
    if not report.completed:
        raise typer.Exit(code=report.exit_code)

    if plan.serve:
        _maybe_serve(plan, compiler, serve)


def _maybe_serve(plan: Plan, compiler: PlanCompiler, serve: Optional[bool]) -> None:
    if serve is None:
        if not sys.stdin.isatty():
            return
        serve = typer.confirm("Start development server?", default=False)
    if not serve:
        return
    try:
        compiler.runner.run(plan.serve, cwd=plan.serve_cwd)
    except CommandFailed as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
