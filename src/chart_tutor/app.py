"""Interactive CLI application."""
import os
import sys

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import IntPrompt, Prompt
from rich.table import Table

from chart_tutor.catalog import get_lesson, list_lessons
from chart_tutor.db import DEFAULT_DB_PATH, get_connection, init_db
from chart_tutor.drills import get_drill, list_drills, submit_drill
from chart_tutor.errors import TutorError
from chart_tutor.mastery import get_weak_lessons
from chart_tutor.practice import build_daily_session, submit_daily_session
from chart_tutor.progress import get_progress
from chart_tutor.quiz import get_quiz_history, get_quiz_questions, submit_quiz
from chart_tutor.seed import is_seeded, seed_all

console = Console()

LOCAL_USER_ID = int(os.environ.get("CHART_TUTOR_USER", "1"))
EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """Raised when the learner leaves a quiz, practice or drill mid-way."""


def session_prompt(prompt: str, choices: list[str] | None = None, **kwargs) -> str:
    if choices is not None:
        kwargs["choices"] = list(choices) + list(EXIT_WORDS)
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str]) -> int:
    return int(session_prompt(prompt, choices=choices))


def show_welcome():
    console.print(Panel(
        "[bold]Chart Tutor[/bold]\n[dim]Price action practice and review[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("quiz", "Take a lesson quiz"),
        ("practice", "Today's review session"),
        ("drill", "Mark zones and points on a chart"),
        ("progress", "Lessons, mastery and reviews due"),
        ("history", "Past quiz attempts for a lesson"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def ask_question(i: int, total: int, q: dict) -> str:
    console.print(f"[bold]Q{i}/{total}.[/bold] {q['prompt']}\n")
    options = q.get("options") or []
    for n, option in enumerate(options, 1):
        console.print(f"  [cyan]{n})[/cyan] {option}")
    if options:
        pick = session_int_prompt("\nYour answer", choices=[str(n) for n in range(1, len(options) + 1)])
        return options[pick - 1]
    return session_prompt("\nYour answer")


def show_results(results: list[dict]) -> None:
    for r in results:
        if r["is_correct"]:
            console.print(f"[green]Q{r['question_id']} correct[/green]")
        else:
            console.print(f"[red]Q{r['question_id']} incorrect.[/red] Answer: [green]{r['correct_answer']}[/green]")
        if r["explanation"]:
            console.print(f"[dim]{r['explanation']}[/dim]")


def _pick_lesson(db_path: str) -> int:
    conn = get_connection(db_path)
    lessons = list_lessons(conn)
    conn.close()
    table = Table(title="Lessons")
    table.add_column("Id", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Level", justify="right")
    for lesson in lessons:
        table.add_row(str(lesson["id"]), lesson["title"], str(lesson["level"]))
    console.print(table)
    return IntPrompt.ask("Lesson id", choices=[str(lesson["id"]) for lesson in lessons])


def cmd_quiz(db_path: str, user_id: int):
    lesson_id = _pick_lesson(db_path)
    questions = get_quiz_questions(db_path, lesson_id)
    answers = []
    for i, q in enumerate(questions, 1):
        answers.append({"question_id": q["question_id"], "answer": ask_question(i, len(questions), q)})
        console.print()
    result = submit_quiz(db_path, user_id, lesson_id, answers)
    show_results(result["results"])
    color = "green" if result["passed"] else "red"
    console.print(
        f"\n[bold]Score: [{color}]{result['score']}%[/{color}][/bold] "
        f"({result['correct_count']}/{result['total']})  Mastery: [bold]{result['mastery_score']}%[/bold]"
    )
    if not result["passed"]:
        console.print("[yellow]Missed questions were added to your review queue.[/yellow]")


def cmd_practice(db_path: str, user_id: int):
    session = build_daily_session(db_path, user_id)
    questions = session["questions"]
    if not questions:
        console.print("[yellow]Nothing to practice today. Take a quiz first![/yellow]")
        return
    console.print(f"\n[bold]Daily Practice[/bold] - {len(questions)} questions ({session['total_due']} due)\n")
    answers = []
    for i, q in enumerate(questions, 1):
        console.print(f"[dim]{q['lesson_title']} ({q['review_state']})[/dim]")
        answer = ask_question(i, len(questions), q)
        answers.append({"question_id": q["question_id"], "queue_id": q["queue_id"], "answer": answer})
        console.print()
    result = submit_daily_session(db_path, user_id, answers)
    show_results(result["results"])
    console.print(f"\n[bold]Score: {result['score']}%[/bold] ({result['correct_count']}/{result['total']})")


def _read_marks() -> dict:
    """Collect zones ('zone TYPE FROM TO') and points ('point TYPE PRICE [BAR] [DIRECTION]')."""
    zones, points = [], []
    console.print("[dim]Enter marks, blank line to submit:[/dim]")
    console.print("[dim]  zone support 100 110[/dim]")
    console.print("[dim]  point bos 104.5 22 bearish[/dim]")
    while True:
        line = session_prompt("mark", default="").strip()
        if not line:
            break
        parts = line.split()
        if parts[0] == "zone" and len(parts) == 4:
            zones.append({"type": parts[1], "priceFrom": parts[2], "priceTo": parts[3]})
        elif parts[0] == "point" and len(parts) >= 3:
            point = {"type": parts[1], "price": parts[2]}
            if len(parts) > 3:
                point["barIndex"] = parts[3]
            if len(parts) > 4:
                point["direction"] = parts[4]
            points.append(point)
        else:
            console.print("[red]Could not read that mark.[/red]")
    return {"zones": zones, "points": points}


def cmd_drill(db_path: str, user_id: int):
    drills = list_drills(db_path, user_id)
    table = Table(title="Drills")
    table.add_column("Id", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Level", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Last", justify="right")
    for d in drills:
        last = "" if d["last_score"] is None else f"{d['last_score']}%"
        table.add_row(str(d["id"]), d["title"], str(d["level_required"]), str(d["attempt_count"]), last)
    console.print(table)

    drill_id = IntPrompt.ask("Drill id", choices=[str(d["id"]) for d in drills])
    drill = get_drill(db_path, drill_id, user_id)["drill"]
    low, high = drill["price_range"]
    console.print(Panel(
        f"{drill['description']}\n\n[dim]{len(drill['chart_data'])} candles, price {low}-{high}[/dim]",
        title=drill["title"], border_style="cyan",
    ))

    hints_used, revealed = 0, False
    while True:
        action = session_prompt("hint, reveal or mark", choices=["hint", "reveal", "mark"], default="mark")
        if action == "hint" and hints_used < 2:
            hints_used += 1
            console.print(f"[yellow]{drill['hint%d' % hints_used]}[/yellow]")
        elif action == "hint":
            console.print("[dim]No more hints.[/dim]")
        elif action == "reveal":
            revealed = True
            break
        else:
            break

    result = submit_drill(db_path, user_id, drill_id, _read_marks(), hints_used, revealed)
    for f in result["feedback"]:
        color = "green" if f["correct"] else "red"
        console.print(f"  [{color}]{f['element']}[/{color}] {f['explanation']}")
    badge = " [magenta](assisted)[/magenta]" if result["assisted"] else ""
    console.print(f"\n[bold]Score: {result['score']}%[/bold]{badge}")
    console.print(f"[dim]{result['answer_set']['description']}[/dim]")


def cmd_progress(db_path: str, user_id: int):
    progress = get_progress(db_path, user_id)
    table = Table(title="Lesson Progress")
    table.add_column("Id", justify="right")
    table.add_column("Lesson", style="cyan")
    table.add_column("Status")
    table.add_column("Mastery", justify="right")
    for lesson in progress["lessons"]:
        score = lesson["mastery_score"]
        color = "green" if score >= 70 else "yellow" if score >= 50 else "red"
        table.add_row(str(lesson["id"]), lesson["title"], lesson["status"], f"[{color}]{score}%[/{color}]")
    console.print(table)
    console.print(f"\n  Reviews due: [bold]{progress['review_due_count']}[/bold]")

    conn = get_connection(db_path)
    weak = get_weak_lessons(conn, user_id)
    conn.close()
    if weak:
        console.print("\n[bold]Needs work:[/bold]")
        for w in weak:
            console.print(f"  [red]{w['score']}%[/red] {w['title']}")


def cmd_history(db_path: str, user_id: int):
    lesson_id = _pick_lesson(db_path)
    attempts = get_quiz_history(db_path, user_id, lesson_id)
    if not attempts:
        console.print("[yellow]No attempts yet.[/yellow]")
        return
    conn = get_connection(db_path)
    lesson = get_lesson(conn, lesson_id)
    conn.close()
    table = Table(title=f"{lesson['title']} attempts")
    table.add_column("When")
    table.add_column("Score", justify="right")
    table.add_column("Result")
    for a in attempts:
        result = "[green]passed[/green]" if a.passed else "[red]failed[/red]"
        table.add_row(a.created_at[:16].replace("T", " "), f"{a.score}%", result)
    console.print(table)


COMMANDS = {
    "quiz": cmd_quiz,
    "practice": cmd_practice,
    "drill": cmd_drill,
    "progress": cmd_progress,
    "history": cmd_history,
}


def main():
    logger.remove()
    logger.add(sys.stderr, level=os.environ.get("CHART_TUTOR_LOG_LEVEL", "WARNING"))

    db_path = DEFAULT_DB_PATH
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)
    if first_run:
        console.print("[green]Ready![/green]\n")

    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="practice").strip().lower()
        if choice in ("quit", "exit", "q"):
            console.print("[dim]Happy trading![/dim]")
            break
        command = COMMANDS.get(choice)
        if command is None:
            console.print("[red]Unknown command. Try again.[/red]")
            continue
        try:
            command(db_path, LOCAL_USER_ID)
        except SessionExitRequested:
            console.print("[dim]Back to menu.[/dim]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except TutorError as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
