"""Interactive CLI application."""
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt
from rich.table import Table

from stade.dashboard import (
    calc_readiness_score, get_readiness_color, get_readiness_label,
    get_study_stats, session_progress,
)
from stade.db import default_db_path, init_db
from stade.flashcards import get_due_cards, get_schedule, next_card_index, rate_card
from stade.generator import DIFFICULTIES, GenerationError, generate_questions, generate_study_set
from stade.importer import (
    MaterialError, fetch_transcript_text, fetch_url_text, import_file, prepare_material,
)
from stade.log import setup_logging
from stade.models import MCQuestion, Session
from stade.quiz import QuizRun
from stade.review import build_review_set, get_weak_questions
from stade.sessions import (
    SessionNotFound, create_session, delete_session, list_sessions,
    load_session, load_shared_session, replace_questions, upsert_session,
)
from stade.settings import (
    get_difficulty, get_question_count, get_quiz_time_limit, set_setting,
)
from stade.sm2 import RATING_LABELS

logger = logging.getLogger(__name__)

console = Console()

EXIT_WORDS = ("q", "menu")
GRADING_WORKERS = 4


class SessionExitRequested(Exception):
    """The learner asked to leave a drill and go back to the menu."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str]) -> int:
    answer = Prompt.ask(prompt, choices=choices + list(EXIT_WORDS), show_choices=False)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return int(answer)


def show_welcome():
    console.print(Panel(
        "[bold]Stade[/bold]\n[dim]Notes in, summaries, flashcards and quizzes out[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu(session: Session | None):
    if session:
        console.print(f"\n[dim]Current session:[/dim] [bold]{session.title}[/bold]")
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("new", "Create a session from notes"),
        ("sessions", "List saved sessions"),
        ("open", "Switch to a saved session"),
        ("summary", "Read the current summary"),
        ("quiz", "Take the current quiz"),
        ("regenerate", "New quiz from the same notes"),
        ("flashcards", "Drill due flashcards"),
        ("review", "Drill weak questions"),
        ("dashboard", "Progress overview"),
        ("shared", "Open a session by share token"),
        ("settings", "Quiz preferences"),
        ("delete", "Delete the current session"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def show_summary(session: Session) -> None:
    summary = session.summary
    console.print(Panel(summary.overview or "[dim]No overview[/dim]", title=summary.title, border_style="blue"))
    if summary.key_points:
        console.print("[bold]Key points[/bold]")
        for point in summary.key_points:
            console.print(f"  • {point}")
    if summary.concepts:
        table = Table(title="Concepts")
        table.add_column("Term", style="cyan")
        table.add_column("Definition")
        for c in summary.concepts:
            table.add_row(c.term, c.definition)
        console.print(table)
    if summary.quick_facts:
        console.print("[bold]Quick facts[/bold]")
        for fact in summary.quick_facts:
            console.print(f"  [green]★[/green] {fact}")
    if session.share_token:
        console.print(f"\n[dim]Share token: {session.share_token}[/dim]")


def run_flashcard_session(db_path: str, cards: list) -> int:
    """Rate each card once, in deck order. Returns the number of cards rated."""
    if not cards:
        console.print("[yellow]No flashcards due right now![/yellow]")
        return 0
    console.print(f"\n[bold]Flashcard Session[/bold] - {len(cards)} cards (q to stop)\n")
    index = 0
    rated = 0
    while True:
        card = cards[index]
        console.print(Panel(card.term, title=f"Card {index + 1}/{len(cards)}", border_style="cyan"))
        session_prompt("[dim]Press Enter to reveal the definition[/dim]", default="", show_default=False)
        console.print(Panel(card.definition, border_style="green"))
        labels = ", ".join(f"{r}={label.lower()}" for r, label in RATING_LABELS.items())
        rating = session_int_prompt(f"Rate yourself ({labels})", choices=["1", "2", "3", "4"])
        updated = rate_card(db_path, card.term, rating)
        rated += 1
        console.print(f"[dim]Next review in {updated.interval} day(s)[/dim]\n")
        index = next_card_index(index, len(cards))
        if index == 0:
            return rated


def _ask_short_answer(prompt: str) -> str:
    while True:
        text = session_prompt(prompt, default="", show_default=False)
        if text.strip():
            return text
        console.print("[yellow]Type an answer, or q to leave the quiz.[/yellow]")


def show_quiz_results(run: QuizRun) -> None:
    table = Table(title="Results")
    table.add_column("#", justify="right")
    table.add_column("Question")
    table.add_column("Your answer")
    table.add_column("Result")
    for qi, (question, state) in enumerate(zip(run.questions, run.states), 1):
        correct = run.is_correct(qi - 1)
        mark = "[green]✓[/green]" if correct else "[red]✗[/red]"
        if isinstance(question, MCQuestion):
            answer = state.selected or "[dim](none)[/dim]"
            detail = "" if correct else f" {question.answer}"
        else:
            answer = state.user_answer or "[dim](none)[/dim]"
            detail = f" {state.result.score}/5 {state.result.feedback}" if state.result else ""
        table.add_row(str(qi), question.question, answer, mark + detail)
    console.print(table)
    score, max_score = run.score()
    pct = score / max_score * 100 if max_score else 0
    color = get_readiness_color(pct)
    console.print(f"[bold]Score: [{color}]{score}/{max_score}[/{color}] ({pct:.0f}%)[/bold]")
    progress = session_progress(run.session)
    if run.count_attempt and progress["previous"] is not None:
        delta = progress["delta"]
        sign = "+" if delta >= 0 else ""
        console.print(f"[dim]Previous: {progress['previous']}  |  Best: {progress['best']}  |  Change: {sign}{delta}[/dim]")
    if progress["weak"]:
        console.print(f"[yellow]{progress['weak']} weak question(s) to review[/yellow]")


def run_quiz_session(db_path: str, session: Session, questions=None, count_attempt: bool = True) -> QuizRun:
    time_limit = get_quiz_time_limit(db_path)
    with ThreadPoolExecutor(max_workers=GRADING_WORKERS) as executor:
        run = QuizRun(
            db_path, session, executor=executor, time_limit=time_limit,
            questions=questions, count_attempt=count_attempt,
        )
        if not run.questions:
            console.print("[yellow]No questions available![/yellow]")
            return run
        header = f"\n[bold]Quiz[/bold] - {run.question_count} questions"
        if time_limit:
            header += f" [dim](timer: {time_limit}s, starts on your first answer)[/dim]"
        console.print(header + "\n")
        futures = []
        try:
            for qi, q in enumerate(run.questions):
                if run.finished:
                    break
                console.print(f"[bold]Q{qi + 1}.[/bold] {q.question}\n")
                if isinstance(q, MCQuestion):
                    letters = "abcdefgh"[:len(q.options)]
                    for letter, option in zip(letters, q.options):
                        console.print(f"  [cyan]{letter})[/cyan] {option}")
                    choice = session_prompt("\nYour answer", choices=list(letters) + list(EXIT_WORDS), show_choices=False)
                    if not run.select_option(qi, q.options[letters.index(choice)]):
                        break
                    if run.is_correct(qi):
                        console.print("[green]Correct![/green]\n")
                    else:
                        console.print(f"[red]Incorrect.[/red] Answer: [green]{q.answer}[/green]\n")
                else:
                    text = _ask_short_answer("Your answer")
                    future = run.submit_answer(qi, text)
                    if future is None:
                        # the timer ran out while the learner was typing
                        console.print("[yellow]Answer not recorded.[/yellow]\n")
                        break
                    futures.append(future)
                    console.print("[dim]Submitted for grading.[/dim]\n")
        except SessionExitRequested:
            run.cancel()
            raise
        if futures and not run.finished:
            with console.status("Grading short answers..."):
                wait(futures)
    if run.finished and not run.completed.wait(timeout=10):
        console.print("[red]Still saving results; this attempt may not be recorded.[/red]")
    if run.timed_out:
        console.print("[red]Time's up![/red] Unanswered questions were counted wrong.")
    show_quiz_results(run)
    if run.save_error is not None:
        console.print(f"[red]This attempt was not saved: {run.save_error}[/red]")
    return run


def _require_session(db_path: str, session_id: str | None) -> Session | None:
    if session_id is None:
        console.print("[yellow]No session open. Use 'new' or 'open' first.[/yellow]")
        return None
    try:
        return load_session(db_path, session_id)
    except SessionNotFound:
        console.print("[yellow]That session no longer exists. Use 'new' or 'open'.[/yellow]")
        return None


def cmd_new(db_path: str) -> str | None:
    source = Prompt.ask("Material source", choices=["file", "url", "video", "text"], default="file")
    if source == "file":
        material = import_file(Prompt.ask("File path").strip())
    elif source == "url":
        material = fetch_url_text(Prompt.ask("URL"))
    elif source == "video":
        material = fetch_transcript_text(Prompt.ask("YouTube URL or video ID"))
    else:
        material = prepare_material(Prompt.ask("Paste your notes"))
    count = get_question_count(db_path)
    difficulty = get_difficulty(db_path)
    with console.status("Generating summary, flashcards and quiz..."):
        summary, questions = generate_study_set(material, count, difficulty)
    session = create_session(summary.title, summary, questions, source_text=material)
    upsert_session(db_path, session)
    console.print(f"[green]Created session '{session.title}'[/green] "
                  f"({len(summary.concepts)} flashcards, "
                  f"{len(questions.multiple_choice) + len(questions.short_answer)} questions)\n")
    show_summary(session)
    return session.id


def cmd_sessions(db_path: str) -> list[dict]:
    sessions = list_sessions(db_path)
    if not sessions:
        console.print("[yellow]No saved sessions yet. Use 'new' to create one.[/yellow]")
        return sessions
    table = Table(title="Sessions")
    table.add_column("#", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Created")
    table.add_column("Questions", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Best", justify="right")
    table.add_column("Weak", justify="right")
    for i, s in enumerate(sessions, 1):
        best = "-" if s["best_score"] is None else f"{s['best_score']}/{s['best_max']}"
        table.add_row(str(i), s["title"], s["created_at"], str(s["question_count"]),
                      str(s["attempt_count"]), best, str(s["weak_count"]))
    console.print(table)
    return sessions


def cmd_open(db_path: str) -> str | None:
    sessions = cmd_sessions(db_path)
    if not sessions:
        return None
    choice = IntPrompt.ask("Open session", choices=[str(i) for i in range(1, len(sessions) + 1)])
    session = load_session(db_path, sessions[choice - 1]["id"])
    # Opening counts as touching it
    upsert_session(db_path, session)
    console.print(f"[green]Opened '{session.title}'[/green]")
    return session.id


def cmd_quiz(db_path: str, session_id: str | None):
    session = _require_session(db_path, session_id)
    if session:
        run_quiz_session(db_path, session)


def cmd_regenerate(db_path: str, session_id: str | None):
    session = _require_session(db_path, session_id)
    if not session:
        return
    if not session.source_text.strip():
        console.print("[yellow]This session has no saved notes to generate from.[/yellow]")
        return
    with console.status("Generating a new quiz..."):
        questions = generate_questions(
            session.source_text, get_question_count(db_path), get_difficulty(db_path),
        )
    replace_questions(db_path, session, questions)
    console.print(f"[green]New quiz ready[/green] "
                  f"({len(questions.multiple_choice) + len(questions.short_answer)} questions, "
                  f"{len(session.weak_questions)} weak question(s) carried over)")


def cmd_flashcards(db_path: str, session_id: str | None):
    session = _require_session(db_path, session_id)
    if not session:
        return
    console.print("\n[bold]Flashcard Drill[/bold]")
    cards = get_due_cards(db_path, session.summary.concepts)
    run_flashcard_session(db_path, cards)


def cmd_review(db_path: str, session_id: str | None):
    weak = get_weak_questions(db_path, limit=10)
    if not weak:
        console.print("[green]No weak questions! Keep up the good work.[/green]")
        return
    table = Table(title="Most Missed Questions")
    table.add_column("Misses", justify="right")
    table.add_column("Question")
    table.add_column("Session", style="cyan")
    for w in weak:
        table.add_row(str(w["wrong_count"]), w["question"], w["session_title"])
    console.print(table)

    session = _require_session(db_path, session_id)
    if not session:
        return
    review_set = build_review_set(session)
    if not review_set.multiple_choice and not review_set.short_answer:
        console.print("[green]Nothing to review in this session.[/green]")
        return
    console.print(f"\n[bold]Drilling weak questions: {session.title}[/bold]")
    run_quiz_session(db_path, session, questions=review_set, count_attempt=False)


def cmd_dashboard(db_path: str, session_id: str | None):
    score = calc_readiness_score(db_path)
    label = get_readiness_label(score)
    color = get_readiness_color(score)
    stats = get_study_stats(db_path)

    console.print(Panel("[bold]Your study progress[/bold]", title="Dashboard", border_style="blue"))
    bar_filled = int(score / 5)
    bar_empty = 20 - bar_filled
    bar = f"[{color}]{'█' * bar_filled}{'░' * bar_empty}[/{color}]"
    console.print(f"\n  Overall Readiness: [bold]{score}%[/bold] {bar} [{color}]{label}[/{color}]\n")

    console.print(f"  Sessions: [bold]{stats['sessions']}[/bold]  |  "
                  f"Cards due: [bold]{stats['cards_due']}[/bold] of {stats['cards_tracked']}  |  "
                  f"Reviews: [bold]{stats['flashcards_reviewed']}[/bold]  |  "
                  f"Quizzes: [bold]{stats['quizzes_taken']}[/bold]  |  "
                  f"Avg Quiz: [bold]{stats['avg_quiz_score']}%[/bold]  |  "
                  f"Weak: [bold]{stats['weak_questions']}[/bold]")

    if session_id is None:
        return
    try:
        session = load_session(db_path, session_id)
    except SessionNotFound:
        return
    progress = session_progress(session)
    if not progress["attempts"]:
        console.print(f"\n  [dim]No attempts yet for '{session.title}'[/dim]")
        return
    table = Table(title=f"Attempts: {session.title}")
    table.add_column("Date")
    table.add_column("Score", justify="right")
    for a in session.attempts:
        pct = a.score / a.max * 100 if a.max else 0
        c = get_readiness_color(pct)
        table.add_row(a.date, f"[{c}]{a.score}/{a.max}[/{c}]")
    console.print(table)
    console.print(f"  Best: [bold]{progress['best']}[/bold]  |  Weak questions: [bold]{progress['weak']}[/bold]")


def cmd_shared(db_path: str):
    token = Prompt.ask("Share token").strip()
    try:
        session = load_shared_session(db_path, token)
    except SessionNotFound:
        console.print("[red]No session with that share token.[/red]")
        return
    show_summary(session)


def cmd_settings(db_path: str):
    count = IntPrompt.ask("Questions per quiz", default=get_question_count(db_path))
    difficulty = Prompt.ask("Difficulty", choices=list(DIFFICULTIES), default=get_difficulty(db_path))
    limit = IntPrompt.ask("Quiz timer in seconds (0 = off)", default=get_quiz_time_limit(db_path) or 0)
    set_setting(db_path, "question_count", str(max(1, count)))
    set_setting(db_path, "difficulty", difficulty)
    set_setting(db_path, "quiz_time_limit", str(max(0, limit)))
    console.print("[green]Settings saved.[/green]")


def cmd_delete(db_path: str, session_id: str | None) -> str | None:
    session = _require_session(db_path, session_id)
    if not session:
        return session_id
    confirm = Prompt.ask(f"Delete '{session.title}'?", choices=["y", "n"], default="n")
    if confirm != "y":
        return session_id
    delete_session(db_path, session.id)
    console.print("[green]Session deleted.[/green]")
    return None


def main():
    load_dotenv()
    db_path = default_db_path()
    init_db(db_path)
    setup_logging(str(Path(db_path).parent))
    show_welcome()

    sessions = list_sessions(db_path)
    current = sessions[0]["id"] if sessions else None

    while True:
        try:
            open_session = load_session(db_path, current) if current else None
        except SessionNotFound:
            current, open_session = None, None
        show_menu(open_session)
        choice = Prompt.ask("\n[bold]>[/bold]", default="quiz" if current else "new").strip().lower()
        try:
            if choice == "new":
                current = cmd_new(db_path) or current
            elif choice == "sessions":
                cmd_sessions(db_path)
            elif choice == "open":
                current = cmd_open(db_path) or current
            elif choice == "summary":
                session = _require_session(db_path, current)
                if session:
                    show_summary(session)
            elif choice == "quiz":
                cmd_quiz(db_path, current)
            elif choice == "regenerate":
                cmd_regenerate(db_path, current)
            elif choice == "flashcards":
                cmd_flashcards(db_path, current)
            elif choice == "review":
                cmd_review(db_path, current)
            elif choice == "dashboard":
                cmd_dashboard(db_path, current)
            elif choice == "shared":
                cmd_shared(db_path)
            elif choice == "settings":
                cmd_settings(db_path)
            elif choice == "delete":
                current = cmd_delete(db_path, current)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Happy studying![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except SessionExitRequested:
            console.print("[dim]Back to the menu.[/dim]")
        except MaterialError as e:
            console.print(f"[red]{e}[/red]")
        except GenerationError:
            console.print("[red]Generation failed. Your saved sessions are unchanged; try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            logger.exception("Command %r failed", choice)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
