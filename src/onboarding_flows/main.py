"""
Onboarding - CLI Entry Point.

Usage:
    onboarding flows                    List bundled flows and their steps
    onboarding run long_form            Walk a flow interactively
    onboarding status long_form         Show saved progress for a flow
    onboarding reset long_form          Discard saved progress for a flow
"""

import asyncio
import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from onboarding.config import get_settings
from onboarding.controller import FlowStatus, Outcome, WorkflowController
from onboarding.permissions import PermissionState, StaticPermissionProvider
from onboarding.progress import ProgressStore
from onboarding.registry import Step
from onboarding.rules import Accepted, AtLeastOneOf, MinItems, Rule, When
from onboarding.storage import FileKeyValueStore

from . import FLOW_NAMES, get_registry
from .services import InMemoryIdentityBackend, StaticAvailabilityChecker

app = typer.Typer(
    name="onboarding",
    help="Onboarding workflow engine - walk and inspect account-setup flows.",
    add_completion=False,
)
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine decisions")) -> None:
    level = "DEBUG" if verbose else get_settings().log_level
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _rule_fields(rule: Rule) -> list[tuple[str, str]]:
    """(field, kind) pairs a rule reads; kind is text, bool or list."""
    if isinstance(rule, When):
        return [pair for nested in rule.rules for pair in _rule_fields(nested)]
    if isinstance(rule, AtLeastOneOf):
        return [(name, "text") for name in rule.fields]
    if isinstance(rule, Accepted):
        return [(rule.field, "bool")]
    if isinstance(rule, MinItems):
        return [(rule.field, "list")]
    return [(rule.field, "text")] if rule.field else []


def step_fields(step: Step) -> list[tuple[str, str]]:
    """Fields collected on a step, in rule order without duplicates."""
    seen: dict[str, str] = {}
    for rule in step.rules:
        for name, kind in _rule_fields(rule):
            seen.setdefault(name, kind)
    return list(seen.items())


def _prompt_answers(step: Step) -> dict:
    answers: dict = {}
    for name, kind in step_fields(step):
        raw = console.input(f"  [cyan]{name}[/cyan]: ").strip()
        if kind == "bool":
            answers[name] = raw.lower() in ("y", "yes", "true", "1")
        elif kind == "list":
            answers[name] = [v.strip() for v in raw.split(",") if v.strip()]
        elif raw:
            answers[name] = raw
    return answers


def _permission_provider(grant: list[str], deny: list[str]) -> StaticPermissionProvider:
    states = {name: PermissionState.GRANTED for name in grant}
    states.update({name: PermissionState.DENIED for name in deny})
    return StaticPermissionProvider(states)


def _show(outcome: Outcome) -> None:
    for warning in outcome.warnings:
        console.print(f"[yellow]⚠ {warning.message}[/yellow]")
    if outcome.error is not None:
        console.print(f"[red]✗ {outcome.error.message}[/red]")


def _check_flow(flow: str) -> None:
    if flow not in FLOW_NAMES:
        console.print(f"[red]Unknown flow {flow!r}. Choose from: {', '.join(FLOW_NAMES)}[/red]")
        raise typer.Exit(code=1)


@app.command()
def flows() -> None:
    """List bundled flows and their steps."""
    for name in FLOW_NAMES:
        registry = get_registry(name)
        table = Table(title=f"{name} ({registry.total_steps()} steps)")
        table.add_column("#", justify="right")
        table.add_column("Key")
        table.add_column("Title")
        table.add_column("Fields")
        table.add_column("Skipped when")
        for step in registry:
            fields = ", ".join(f for f, _ in step_fields(step))
            table.add_row(str(step.ordinal), step.key, step.title, fields, repr(step.skip) if step.skip else "")
        console.print(table)


@app.command()
def run(
    flow: str = typer.Argument(..., help="Flow to walk"),
    grant: list[str] = typer.Option([], "--grant", "-g", help="Permission the host has granted"),
    deny: list[str] = typer.Option([], "--deny", "-d", help="Permission the host has denied"),
    latency: float = typer.Option(0.3, "--latency", help="Simulated availability lookup latency (seconds)"),
) -> None:
    """Walk a flow interactively. Progress survives restarts."""
    _check_flow(flow)
    settings = get_settings()
    registry = get_registry(flow)
    controller = WorkflowController.for_registry(
        registry,
        FileKeyValueStore(settings.state_dir),
        InMemoryIdentityBackend(),
        permissions=_permission_provider(grant, deny),
        availability=StaticAvailabilityChecker(delay=latency),
    )

    outcome = controller.start()
    _show(outcome)
    if controller.status is FlowStatus.COMPLETED:
        console.print(f"[green]{flow} already completed (profile {controller.profile_id}).[/green] Run reset to start over.")
        return
    console.print(
        Panel.fit(
            f"[bold green]{flow}[/bold green]\n"
            "[dim]At each step: enter to answer, 'back', 'jump N' or 'quit'.[/dim]",
            title="Onboarding",
            border_style="green",
        )
    )

    while controller.status is not FlowStatus.COMPLETED:
        view = controller.view()

        if controller.status is FlowStatus.READY_TO_COMPLETE:
            command = console.input("\n[bold]All steps done.[/bold] Commit profile? [y/back/quit] ").strip().lower()
            if command == "back":
                _show(controller.retreat())
            elif command in ("quit", "q"):
                break
            else:
                _show(controller.complete())
            continue

        console.print(
            f"\n[bold blue]Step {view.current_ordinal}/{view.total_steps}[/bold blue] "
            f"{view.current_step_title or view.current_step_key}"
        )
        command = console.input("[dim]> [/dim]").strip().lower()
        if command in ("quit", "q"):
            break
        if command == "back":
            _show(controller.retreat())
            continue
        if command.startswith("jump"):
            try:
                _show(controller.jump_to(int(command.split()[1])))
            except (IndexError, ValueError):
                console.print("[red]Usage: jump N[/red]")
            continue

        step = registry.get_step(view.current_ordinal)
        outcome = asyncio.run(controller.advance(_prompt_answers(step)))
        _show(outcome)

    if controller.status is FlowStatus.COMPLETED:
        console.print(f"\n[green]Profile created: {controller.profile_id}[/green]")
    else:
        console.print("\n[dim]Progress saved. Run again to resume.[/dim]")


@app.command()
def status(flow: str = typer.Argument(..., help="Flow to inspect")) -> None:
    """Show saved progress for a flow."""
    _check_flow(flow)
    settings = get_settings()
    registry = get_registry(flow)
    store = ProgressStore(FileKeyValueStore(settings.state_dir), registry.name, registry.total_steps())
    completion = store.load_completion()
    if completion.value is not None:
        console.print(f"Flow: [bold]{flow}[/bold]")
        console.print(f"Completed: profile {completion.value.profile_id} at {completion.value.completed_at}")
        return

    loaded = store.load()
    if loaded.warning:
        console.print(f"[yellow]⚠ {loaded.warning.message}[/yellow]")
    if loaded.value is None:
        console.print(f"No saved progress for {flow}.")
        return

    state = loaded.value
    step = registry.get_step(state.current_step)
    console.print(f"Flow: [bold]{flow}[/bold]")
    console.print(f"Current step: {state.current_step} ({step.key if step else 'ready to complete'})")
    console.print(f"Completed: {sorted(state.completed_steps)}")
    console.print(f"Answers: {', '.join(sorted(state.answers)) or 'none'}")
    console.print(f"Saved at: {state.saved_at}")


@app.command()
def reset(flow: str = typer.Argument(..., help="Flow to reset")) -> None:
    """Discard saved progress and the completion marker for a flow."""
    _check_flow(flow)
    settings = get_settings()
    registry = get_registry(flow)
    store = ProgressStore(FileKeyValueStore(settings.state_dir), registry.name, registry.total_steps())
    cleared = store.reset()
    if cleared.warning:
        console.print(f"[yellow]⚠ {cleared.warning.message}[/yellow]")
    else:
        console.print(f"Progress for {flow} cleared.")


if __name__ == "__main__":
    app()
