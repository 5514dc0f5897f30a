"""Interactive terminal harness for deck files and study sessions."""
import logging
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt, Confirm
from rich.table import Table
from rich.tree import Tree

from deckdrill.config import settings
from deckdrill.deck_tree import DeckTree
from deckdrill.errors import DeckDrillError
from deckdrill.metrics import get_deck_metrics, get_mastery_color, get_mastery_label
from deckdrill.models import Deck, SessionState, UserContext
from deckdrill.outbox import WriteQueue
from deckdrill.session import (
    SessionEngine, create_bank_review, create_practice_test, create_study_session,
)
from deckdrill.store import MemoryStore
from deckdrill.text_import import import_text_file, parse_text_to_deck, preview_text_deck, read_file_content
from deckdrill.transfer import export_deck_json, export_file_name, import_deck, read_deck_file, validate_deck_import

console = Console()

EXIT_WORDS = ("q", "quit", "menu")


class SessionExitRequested(Exception):
    """User asked to leave the running session."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


class Workspace:
    """Decks loaded for this terminal run, held in memory only."""

    def __init__(self, user_id: str = "local"):
        self.user = UserContext(user_id=user_id)
        self.store = MemoryStore()
        self.tree = DeckTree(self.store, self.user)
        self.writes = WriteQueue(self.store, self.user)

    def load(self, file_path: str) -> Deck:
        if Path(file_path).suffix.lower() in (".json", ".yaml", ".yml"):
            root, _, _ = import_deck(self.tree, read_deck_file(file_path))
            return root
        return import_text_file(self.tree, file_path).deck


def show_welcome():
    console.print(Panel(
        "[bold]deckdrill[/bold]\n[dim]Decks, study sessions and practice tests[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("load", "Load a deck file (.txt, .json, .yaml)"),
        ("decks", "Deck tree with mastery"),
        ("study", "Study a deck, weakest questions first"),
        ("practice", "Practice test"),
        ("bank", "Review your question bank"),
        ("preview", "Preview a text deck file"),
        ("convert", "Convert a text deck to JSON"),
        ("check", "Validate a JSON/YAML deck file"),
        ("export", "Export a loaded deck to JSON"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def choose_deck(ws: Workspace, practice_only: bool = False) -> Optional[Deck]:
    decks = []
    for root in ws.tree.root_decks():
        decks.append(root)
        decks.extend(ws.tree.all_subdecks_of(root.id))
    if practice_only:
        decks = [d for d in decks if d.offers_practice_test]
    if not decks:
        if practice_only:
            console.print("[yellow]No decks are available for practice tests.[/yellow]")
        else:
            console.print("[yellow]No decks loaded. Use 'load' first.[/yellow]")
        return None
    for i, deck in enumerate(decks, 1):
        path = " / ".join(d.title for d in ws.tree.breadcrumb(deck.id))
        console.print(f"  [cyan]{i}[/cyan]) {path} [dim]({ws.tree.total_question_count(deck.id)} questions)[/dim]")
    choice = IntPrompt.ask("Select deck", choices=[str(i) for i in range(1, len(decks) + 1)])
    return decks[choice - 1]


def run_session(engine: SessionEngine) -> None:
    engine.start()
    total = len(engine.questions)
    try:
        while engine.state == SessionState.IN_PROGRESS:
            question = engine.current_question
            position = engine.session.current_index + 1
            header = f"Q{position}/{total}"
            if engine.timer is not None:
                header += f"  [dim]{engine.timer.format_remaining()} left[/dim]"
            console.print(f"\n[bold]{header}[/bold] {question.text}\n")
            letters = "abcdefghij"[:len(question.options)]
            for letter, option in zip(letters, question.options):
                console.print(f"  [cyan]{letter})[/cyan] {option.text}")
            asked_at = time.monotonic()
            answer = session_prompt("\nYour answer", choices=list(letters) + list(EXIT_WORDS))
            response_time_ms = int((time.monotonic() - asked_at) * 1000)
            if engine.check_time():
                break
            option = question.options[letters.index(answer)]
            is_correct = engine.answer(question.id, option.id, response_time_ms)
            if is_correct is True:
                console.print("[green]Correct![/green]")
            elif is_correct is False:
                console.print(f"[red]Incorrect.[/red] Answer: [green]{question.correct_option().text}[/green]")
            engine.advance()
    except SessionExitRequested:
        engine.finish()
    show_result(engine)


def show_result(engine: SessionEngine) -> None:
    result = engine.result()
    if result.timed_out:
        console.print("[yellow]Time's up! The test was automatically completed.[/yellow]")
    console.print(
        f"\n[bold]Score: {len(result.correct_ids)}/{result.total} ({result.score_percentage}%)[/bold]"
        f"  [dim]{len(result.incorrect_ids)} incorrect, {len(result.unanswered_ids)} unanswered[/dim]\n"
    )
    if engine.session.incorrect_questions:
        table = Table(title="Review these")
        table.add_column("Question")
        table.add_column("Correct answer", style="green")
        for question in engine.session.incorrect_questions:
            table.add_row(question.text, question.correct_option().text)
        console.print(table)


def cmd_load(ws: Workspace):
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    deck = ws.load(file_path)
    console.print(f"[green]Loaded '{deck.title}' ({ws.tree.total_question_count(deck.id)} questions)[/green]")


def cmd_decks(ws: Workspace):
    roots = ws.tree.root_decks()
    if not roots:
        console.print("[yellow]No decks loaded.[/yellow]")
        return

    def label(deck: Deck) -> str:
        metrics = get_deck_metrics(ws.tree, ws.store, deck.id)
        color = get_mastery_color(metrics.mastery)
        return (
            f"{deck.title} [dim]({ws.tree.total_question_count(deck.id)} q)[/dim] "
            f"[{color}]{metrics.mastery:.0f}% {get_mastery_label(metrics.mastery)}[/{color}]"
        )

    def add(branch: Tree, deck: Deck) -> None:
        node = branch.add(label(deck))
        for child in ws.tree.subdecks_of(deck.id):
            add(node, child)

    tree = Tree("[bold]Decks[/bold]")
    for root in roots:
        add(tree, root)
    console.print(tree)


def cmd_study(ws: Workspace):
    deck = choose_deck(ws)
    if deck:
        run_session(create_study_session(ws.tree, ws.store, ws.writes, deck.id))
        ws.writes.flush()


def cmd_practice(ws: Workspace):
    deck = choose_deck(ws, practice_only=True)
    if not deck:
        return
    count = IntPrompt.ask("Number of questions", default=settings.DEFAULT_PRACTICE_SIZE)
    timed = Confirm.ask("Timed (1 minute per question)?", default=False)
    run_session(create_practice_test(ws.tree, ws.store, ws.writes, deck.id, count, timed=timed))
    ws.writes.flush()


def cmd_bank(ws: Workspace):
    run_session(create_bank_review(ws.tree, ws.store, ws.writes))
    ws.writes.flush()


def cmd_preview(ws: Workspace):
    file_path = Prompt.ask("Text deck file")
    preview = preview_text_deck(read_file_content(file_path))
    if not preview["valid"]:
        console.print(f"[red]{preview['error']}[/red]")
        return
    table = Table(title=preview["title"])
    table.add_column("#", justify="right")
    table.add_column("Question")
    table.add_column("Options", justify="right")
    table.add_column("Correct", style="green")
    for i, q in enumerate(preview["questions"], 1):
        table.add_row(str(i), q["text"], str(q["option_count"]), q["correct"])
    console.print(table)


def cmd_convert(ws: Workspace):
    file_path = Prompt.ask("Text deck file")
    parsed = parse_text_to_deck(read_file_content(file_path))
    out_path = Prompt.ask("Output file", default=str(Path(file_path).with_suffix(".json")))
    Path(out_path).write_text(parsed.to_json())
    console.print(f"[green]Wrote {len(parsed.questions)} questions to {out_path}[/green]")


def cmd_check(ws: Workspace):
    file_path = Prompt.ask("Deck file")
    payload = validate_deck_import(read_deck_file(file_path))
    console.print(
        f"[green]'{payload.deck.title}' is valid: {len(payload.subdecks)} subdecks, "
        f"{len(payload.questions)} questions[/green]"
    )


def cmd_export(ws: Workspace):
    deck = choose_deck(ws)
    if not deck:
        return
    out_path = Prompt.ask("Output file", default=export_file_name(deck))
    Path(out_path).write_text(export_deck_json(ws.tree, deck.id))
    console.print(f"[green]Exported '{deck.title}' to {out_path}[/green]")


COMMANDS = {
    "load": cmd_load,
    "decks": cmd_decks,
    "study": cmd_study,
    "practice": cmd_practice,
    "bank": cmd_bank,
    "preview": cmd_preview,
    "convert": cmd_convert,
    "check": cmd_check,
    "export": cmd_export,
}


def main():
    logging.basicConfig(level=settings.LOG_LEVEL, format=settings.LOG_FORMAT)
    ws = Workspace()
    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="load").strip().lower()
        if choice in ("quit", "exit", "q"):
            console.print("[dim]Happy studying![/dim]")
            break
        command = COMMANDS.get(choice)
        if command is None:
            console.print("[red]Unknown command. Try again.[/red]")
            continue
        try:
            command(ws)
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except DeckDrillError as e:
            console.print(f"[red]Error: {e}[/red]")
        except OSError as e:
            console.print(f"[red]Could not read or write file: {e}[/red]")


if __name__ == "__main__":
    main()
