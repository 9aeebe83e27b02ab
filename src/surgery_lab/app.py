"""Interactive CLI application."""
import logging
import os
import time
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from surgery_lab.cache import make_caches
from surgery_lab.dashboard import get_dashboard_stats, invalidate_dashboard
from surgery_lab.db import DEFAULT_DB_PATH, init_db
from surgery_lab.engine import DecisionEngine
from surgery_lab.errors import SurgeryLabError
from surgery_lab.models import Outcome, Procedure
from surgery_lab.procedures import get_procedure, import_procedure, is_seeded, list_procedures, seed_procedures
from surgery_lab.scoring import grade_color
from surgery_lab.sessions import (
    complete_session, get_user_id, get_user_sessions, is_strict_timing, record_decision,
    set_setting, start_session,
)

console = Console()
logger = logging.getLogger(__name__)

EXIT_WORDS = ("q", "quit", "menu")
METRIC_LABELS = {
    "technical_skill": "Technical skill",
    "decision_making": "Decision making",
    "time_management": "Time management",
    "tissue_handling": "Tissue handling",
    "safety_score": "Safety",
}


class SessionExitRequested(Exception):
    """Raised when the trainee asks to leave a running session."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str]) -> int:
    answer = session_prompt(prompt, choices=choices + ["q"], show_choices=False)
    return int(answer)


def configure_logging() -> None:
    level = os.environ.get("SURGERY_LAB_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level, format="%(message)s", datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def show_welcome():
    console.print(Panel(
        "[bold]Virtual Surgery Lab[/bold]\n[dim]Veterinary surgical decision training[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("train", "Run a surgical procedure"),
        ("dashboard", "Scores, trend and complications"),
        ("procedures", "List available procedures"),
        ("history", "Past training sessions"),
        ("import", "Add a procedure (JSON/YAML)"),
        ("settings", "User id and timing mode"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def show_outcome(outcome: Outcome) -> None:
    fb = outcome.feedback
    color = "green" if outcome.is_correct else "red"
    lines = [f"[bold {color}]{fb.primary}[/bold {color}]", fb.technical]
    if fb.clinical:
        lines.append(fb.clinical)
    lines.append(f"[dim]{fb.educational}[/dim]")
    if fb.references:
        lines.append("[dim]References: " + "; ".join(fb.references) + "[/dim]")
    console.print(Panel("\n".join(lines), title="Feedback", border_style=color))
    for comp in outcome.complications:
        flag = " [bold]Intervention required.[/bold]" if comp.intervention_required else ""
        console.print(
            f"  [red]Complication:[/red] {comp.description} "
            f"(+{comp.recovery_time // 60} min recovery){flag}"
        )


def show_debrief(performance: dict, correct: int, total: int) -> None:
    color = grade_color(performance["grade"])
    table = Table(title="Performance Debrief")
    table.add_column("Metric", style="cyan")
    table.add_column("Score", justify="right")
    for name, label in METRIC_LABELS.items():
        table.add_row(label, str(performance[name]))
    console.print(table)
    console.print(
        f"\n  Overall: [bold]{performance['overall_score']}[/bold]  "
        f"Grade: [{color}]{performance['grade']}[/{color}]  "
        f"Decisions: {correct}/{total} correct  "
        f"Complications: {len(performance['complications'])}\n"
    )


def run_training_session(
    db_path: str,
    procedure: Procedure,
    user_id: str,
    strict_timing: bool = False,
    cache=None,
    clock=time.monotonic,
) -> dict:
    """Walk a procedure step by step, scoring and saving every decision."""
    engine = DecisionEngine(procedure, strict_timing=strict_timing)
    session_id = start_session(db_path, user_id, procedure.id)
    total_steps = len(procedure.steps)
    # A critical error with no emergency step keeps the trainee on the same step
    budget = total_steps * 3
    step_index = 0
    visits = 0
    while step_index < total_steps and visits < budget:
        visits += 1
        step = procedure.steps[step_index]
        console.print(Panel(
            step.description or step.title,
            title=f"Step {step_index + 1}/{total_steps}: {step.title}", border_style="cyan",
        ))
        dp = step.decision_point
        if dp is None:
            session_prompt("[dim]Press Enter to continue[/dim]", default="")
            step_index = engine.advance_linear(step_index)
            continue
        console.print(f"[bold]{dp.question}[/bold]\n")
        for i, option in enumerate(dp.options, 1):
            console.print(f"  [cyan]{i})[/cyan] {option.text}")
        started = clock()
        choice = session_int_prompt("\nYour decision", choices=[str(i) for i in range(1, len(dp.options) + 1)])
        outcome = engine.process_decision(step_index, choice - 1, clock() - started)
        record_decision(db_path, session_id, engine.decision_path[-1])
        show_outcome(outcome)
        step_index = outcome.next_step_index
    if step_index < total_steps:
        logger.warning("Session %s stopped after %d step visits", session_id, visits)

    performance = engine.overall_performance()
    complete_session(db_path, session_id, performance)
    invalidate_dashboard(cache, user_id)
    show_debrief(performance, engine.correct_decisions, engine.total_decision_points)
    return performance


def choose_procedure(db_path: str) -> Procedure | None:
    procedures = list_procedures(db_path)
    if not procedures:
        console.print("[yellow]No procedures available. Use 'import' to add one.[/yellow]")
        return None
    for i, p in enumerate(procedures, 1):
        console.print(f"  [cyan]{i})[/cyan] {p['name']} [dim]({p['species']}, {p['difficulty']})[/dim]")
    choice = session_int_prompt("Select procedure", choices=[str(i) for i in range(1, len(procedures) + 1)])
    return get_procedure(db_path, procedures[choice - 1]["id"])


def cmd_train(db_path: str, caches: dict):
    try:
        procedure = choose_procedure(db_path)
        if procedure is None:
            return
        run_training_session(
            db_path, procedure, get_user_id(db_path),
            strict_timing=is_strict_timing(db_path), cache=caches.get("dashboard"),
        )
    except SessionExitRequested:
        invalidate_dashboard(caches.get("dashboard"), get_user_id(db_path))
        console.print("[dim]Session left. Decisions made so far are saved.[/dim]")


def cmd_dashboard(db_path: str, caches: dict):
    user_id = get_user_id(db_path)
    cache = caches.get("dashboard")
    stats = get_dashboard_stats(db_path, user_id, cache)
    console.print(Panel(f"[bold]Trainee: {user_id}[/bold]", title="Surgery Lab Dashboard", border_style="blue"))

    grade = stats["average_grade"]
    grade_text = f"[{grade_color(grade)}]{grade}[/{grade_color(grade)}]" if grade else "[dim]n/a[/dim]"
    trend_color = {"positive": "green", "negative": "red"}.get(stats["trend"], "dim")
    console.print(
        f"\n  Average score: [bold]{stats['average_score']}[/bold] {grade_text}  |  "
        f"Trend: [{trend_color}]{stats['trend']} ({stats['improvement']:+d})[/{trend_color}]  |  "
        f"Consistency: {stats['consistency']}  |  Efficiency: {stats['efficiency']}"
    )
    console.print(
        f"  Sessions: [bold]{stats['completed_cases']}[/bold]/{stats['sessions_started']} completed  |  "
        f"Study time: [bold]{stats['total_study_minutes']}[/bold] min  |  "
        f"Decision accuracy: [bold]{stats['decision_accuracy']}%[/bold]"
    )
    if stats["complications"]:
        table = Table(title="Complications")
        table.add_column("Type")
        table.add_column("Count", justify="right")
        for ctype, count in stats["complications"].items():
            table.add_row(ctype, str(count))
        console.print(table)
    if cache is not None:
        cs = cache.stats()
        console.print(f"[dim]  Cache: {cs['size']} entries, {cs['hit_rate']:.0%} hit rate[/dim]")


def cmd_procedures(db_path: str):
    table = Table(title="Procedures")
    table.add_column("Id", style="cyan")
    table.add_column("Name")
    table.add_column("Species")
    table.add_column("Difficulty")
    table.add_column("Source")
    for p in list_procedures(db_path):
        table.add_row(p["id"], p["name"], p["species"] or "", p["difficulty"] or "", p["source"])
    console.print(table)


def cmd_history(db_path: str):
    sessions = get_user_sessions(db_path, get_user_id(db_path))
    if not sessions:
        console.print("[yellow]No sessions yet. Use 'train' to start one.[/yellow]")
        return
    table = Table(title="Session History")
    table.add_column("#", justify="right")
    table.add_column("Procedure")
    table.add_column("Started")
    table.add_column("Score", justify="right")
    table.add_column("Grade")
    for s in sessions:
        grade = s["grade"] or ""
        table.add_row(
            str(s["id"]), s["procedure_name"] or s["procedure_id"], s["started_at"][:16],
            "" if s["overall_score"] is None else str(s["overall_score"]),
            f"[{grade_color(grade)}]{grade}[/{grade_color(grade)}]" if grade else "[dim]incomplete[/dim]",
        )
    console.print(table)


def cmd_import(db_path: str):
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    ids = import_procedure(db_path, file_path)
    console.print(f"[green]Imported {len(ids)} procedure(s): {', '.join(ids)}[/green]")


def cmd_settings(db_path: str):
    user_id = Prompt.ask("User id", default=get_user_id(db_path)).strip() or "local"
    strict = Prompt.ask(
        "Strict timing (slow decisions lose time-management points)",
        choices=["y", "n"], default="y" if is_strict_timing(db_path) else "n",
    )
    set_setting(db_path, "user_id", user_id)
    set_setting(db_path, "strict_timing", "1" if strict == "y" else "0")
    console.print("[green]Settings saved.[/green]")


def main():
    configure_logging()
    db_path = DEFAULT_DB_PATH
    init_db(db_path)
    if not is_seeded(db_path):
        console.print("[dim]Setting up for first use...[/dim]")
        seed_procedures(db_path)
        console.print("[green]Ready![/green]\n")
    caches = make_caches()

    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="train").strip().lower()
        try:
            if choice == "train":
                cmd_train(db_path, caches)
            elif choice == "dashboard":
                cmd_dashboard(db_path, caches)
            elif choice == "procedures":
                cmd_procedures(db_path)
            elif choice == "history":
                cmd_history(db_path)
            elif choice == "import":
                cmd_import(db_path)
            elif choice == "settings":
                cmd_settings(db_path)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Good luck in theatre![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except SurgeryLabError as e:
            console.print(f"[red]Error: {e}[/red]")
        except Exception as e:
            logger.exception("Command %r failed", choice)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
