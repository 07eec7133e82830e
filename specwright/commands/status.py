"""
specwright status - Show a project's workflow status.
"""

from rich.console import Console
from rich.table import Table

from specwright.lib.config import WorkflowConfig
from specwright.lib.constants import phase_names
from specwright.lib.types import PhaseStatus, WORKING_AGENTS
from specwright.status.store import JsonStatusStore
from specwright.workflow.engine import is_human_input_required

STATUS_STYLES = {
    PhaseStatus.NOT_STARTED: "dim",
    PhaseStatus.AI_WORKING: "cyan",
    PhaseStatus.AWAITING_USER: "yellow",
    PhaseStatus.USER_REVIEWING: "magenta",
    PhaseStatus.COMPLETE: "green",
}


def cmd_status(args, config: WorkflowConfig, console: Console | None = None) -> int:
    """Print the phase table for one project. Read-only."""
    console = console or Console()
    store = JsonStatusStore(config.outputs_dir, config.lock_timeout)

    status = store.read(args.project_id)
    if status is None:
        console.print(f"ERROR: No readable status for project '{args.project_id}'")
        return 2

    console.print(f"Project: [bold]{status.project_id}[/bold]")
    console.print(f"Current phase: [bold]{status.current_phase_key or '-'}[/bold]")
    if is_human_input_required(status):
        console.print("[yellow]Waiting on user input[/yellow]")
    if status.last_updated_at:
        console.print(f"[dim]Last updated {status.last_updated_at}[/dim]")

    table = Table()
    table.add_column("Agent")
    table.add_column("Phase")
    table.add_column("Status")
    table.add_column("Completed")

    current = status.current_phase
    for agent in WORKING_AGENTS:
        agent_status = status.agents[agent]
        for name in phase_names(agent):
            record = agent_status.phases.get(name)
            phase_status = record.status if record else PhaseStatus.NOT_STARTED
            style = STATUS_STYLES[phase_status]
            marker = " *" if current and current.agent is agent and current.phase == name else ""
            table.add_row(
                agent.value,
                f"{name}{marker}",
                f"[{style}]{phase_status.value}[/{style}]",
                (record.completed_at or "") if record else "",
            )

    console.print(table)
    return 0
