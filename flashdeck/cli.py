"""
flashdeck: Main CLI for sentence flashcards.

A Rich terminal interface for spaced repetition study of
sentence/translation cards.

Commands:
- flashdeck add       - Add a card (optionally AI translated/voiced)
- flashdeck generate  - Generate a sentence card from a topic
- flashdeck list      - List all cards
- flashdeck edit      - Change a card's content
- flashdeck delete    - Remove a card
- flashdeck study     - Review due cards
- flashdeck due       - Show how many cards are due
- flashdeck skip-day  - Pretend a day passed
- flashdeck export    - Write all cards to a JSON file
- flashdeck import    - Replace all cards from a JSON file
"""
from __future__ import annotations

import asyncio
import base64
import mimetypes
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .card import KEEP_AUDIO, Card
from .card_store import CardStore
from .config import Settings, get_settings
from .errors import FlashdeckError, GenerationError, InvalidRatingError
from .generation import AssistResult, CardGenerator
from .scheduler import BinaryPolicy, policy_for
from .session import StudySession
from .transfer import export_to_file, read_import_file

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="flashdeck",
    help="flashdeck: spaced repetition for sentence flashcards",
    no_args_is_help=True,
)
console = Console()


# =============================================================================
# Styling
# =============================================================================

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "warning": "bold yellow",
    "dim": "dim",
}


def _warn_persistence(message: str) -> None:
    console.print(f"[{STYLES['warning']}]Warning:[/{STYLES['warning']}] {message}")


def _open_session(settings: Settings | None = None) -> StudySession:
    """Load the deck and build a session with the configured rating model."""
    settings = settings or get_settings()
    policy = policy_for(settings.rating_model, settings.get_scheduler_config())
    store = CardStore(settings.db_path)
    return StudySession.open(store, policy, on_persistence_warning=_warn_persistence)


def _format_when(moment: datetime | None) -> str:
    if moment is None:
        return "-"
    return moment.astimezone().strftime("%Y-%m-%d %H:%M")


def _read_audio_file(path: Path) -> str:
    """Read an audio file as a data URI."""
    try:
        data = path.read_bytes()
    except OSError as e:
        console.print(f"[red]Cannot read audio file: {e}[/red]")
        raise typer.Exit(1)
    mime = mimetypes.guess_type(path.name)[0] or "audio/mpeg"
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def _short_id(card: Card) -> str:
    return card.id[:8]


def _resolve_card_id(session: StudySession, card_id: str) -> str:
    """Accept either a full id or an unambiguous prefix."""
    card_id = card_id.strip()
    if not card_id:
        console.print("[red]Card id must not be empty. See 'flashdeck list' for ids.[/red]")
        raise typer.Exit(1)
    matches =[card.id for card in session.cards if card.id.startswith(card_id)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        console.print(f"[red]'{card_id}' matches {len(matches)} cards; use more characters.[/red]")
        raise typer.Exit(1)
    return card_id


# =============================================================================
# Display Helpers
# =============================================================================

def display_card_front(card: Card, due_count: int) -> None:
    """Display the prompt side of a card."""
    header = f"Cards due: {due_count}"
    if card.has_audio:
        header += "  |  [cyan]audio[/cyan]"

    panel = Panel(
        card.prompt,
        title=header,
        title_align="left",
        border_style="cyan",
        padding=(1, 2),
    )
    console.print(panel)


def display_card_back(card: Card) -> None:
    """Display the answer side of a card."""
    panel = Panel(
        card.answer,
        border_style="green",
        padding=(1, 2),
    )
    console.print(panel)


def _display_nothing_due(session: StudySession) -> None:
    console.print("\n[green]Nothing due for review![/green]")
    upcoming = session.next_due_at()
    if upcoming is not None:
        console.print(f"Next card due: {_format_when(upcoming)}")


def _ask_rating(session: StudySession) -> object | None:
    """Prompt for a rating until it is valid. None means quit."""
    policy = session.policy
    if isinstance(policy, BinaryPolicy):
        console.print("\n[dim]e = Easy, h = Hard, q = quit[/dim]")
    else:
        console.print("\n[dim]Rate your recall:[/dim]")
        console.print("  5 = Perfect recall")
        console.print("  4 = Correct with hesitation")
        console.print("  3 = Correct with difficulty")
        console.print("  2 = Incorrect, but knew it")
        console.print("  1 = Incorrect, vaguely familiar")
        console.print("  0 = Complete blackout")
        console.print("  [dim]q = quit[/dim]")

    while True:
        text = Prompt.ask("Rating")
        if text.strip().lower() in ("q", "quit"):
            return None
        try:
            return policy.parse(text)
        except InvalidRatingError as e:
            console.print(f"[red]{e}[/red]")


# =============================================================================
# Commands
# =============================================================================

@app.command()
def add(
    question: str = typer.Argument(..., help="Sentence shown before reveal"),
    answer: Optional[str] = typer.Argument(None, help="Translation shown after reveal"),
    audio: Optional[Path] = typer.Option(
        None,
        "--audio", "-a",
        help="Audio file to attach",
    ),
    translate: bool = typer.Option(
        False,
        "--translate", "-t",
        help="Translate the question with AI when no answer is given",
    ),
    speak: bool = typer.Option(
        False,
        "--speak", "-s",
        help="Generate spoken audio with AI",
    ),
) -> None:
    """Add a new card (due immediately)."""
    audio_data = _read_audio_file(audio) if audio else None

    if (translate and not answer) or (speak and audio_data is None):
        generated_answer, generated_audio = _assist(
            question, translate=translate and not answer, speak=speak and audio_data is None
        )
        answer = answer or generated_answer
        audio_data = audio_data or generated_audio

    if not answer:
        answer = Prompt.ask("Answer")

    session = _open_session()
    try:
        card = session.add_card(question, answer, audio_data)
    except FlashdeckError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        session.close()

    console.print(f"[green]Card saved![/green] [dim]({_short_id(card)})[/dim]")


def _assist(text: str, translate: bool, speak: bool) -> tuple[str | None, str | None]:
    """Run the AI translation/speech steps; failures are reported, not raised."""
    settings = get_settings()
    try:
        generator = CardGenerator.from_settings(settings)
    except GenerationError as e:
        console.print(f"[yellow]{e}[/yellow]")
        return None, None

    async def run() -> AssistResult:
        async with generator:
            if translate:
                return await generator.assist(text, speak=speak)
            try:
                return AssistResult(audio=await generator.synthesize_speech(text))
            except GenerationError as e:
                return AssistResult(audio_error=str(e))

    with console.status("Generating..."):
        outcome = asyncio.run(run())

    if outcome.translation_error:
        console.print(f"[yellow]Translation failed: {outcome.translation_error}[/yellow]")
    if outcome.audio_error:
        console.print(f"[yellow]Voice generation failed: {outcome.audio_error}[/yellow]")
    return outcome.translation, outcome.audio


@app.command()
def generate(
    topic: str = typer.Argument(..., help="Topic or keyword for the sentence"),
    speak: bool = typer.Option(
        True,
        "--speak/--no-speak",
        help="Generate spoken audio",
    ),
) -> None:
    """Generate a sentence card from a topic with AI."""
    settings = get_settings()
    try:
        generator = CardGenerator.from_settings(settings)
    except GenerationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    async def run():
        async with generator:
            sentence = await generator.generate_sentence(topic)
            return sentence, await generator.assist(sentence, speak=speak)

    try:
        with console.status("Generating sentence..."):
            sentence, result = asyncio.run(run())
    except GenerationError as e:
        console.print(f"[red]Sentence generation failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(Panel(sentence, title="Question", border_style="cyan"))

    answer = result.translation
    if result.translation_error:
        console.print(f"[yellow]Translation failed: {result.translation_error}[/yellow]")
        answer = Prompt.ask("Answer")
    else:
        console.print(Panel(answer, title="Answer", border_style="green"))

    if result.audio_error:
        console.print(f"[yellow]Voice generation failed: {result.audio_error}[/yellow]")
    elif result.audio:
        console.print("[dim]Voice ready (will be attached)[/dim]")

    if not Confirm.ask("Save card?", default=True):
        raise typer.Exit(0)

    session = _open_session(settings)
    try:
        card = session.add_card(sentence, answer, result.audio)
    except FlashdeckError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        session.close()

    console.print(f"[green]Card saved![/green] [dim]({_short_id(card)})[/dim]")


@app.command("list")
def list_cards() -> None:
    """List all cards with their schedule."""
    session = _open_session()
    try:
        cards = list(session.cards)
        now = session.now()
    finally:
        session.close()

    if not cards:
        console.print("[dim]No cards yet. Add one with 'flashdeck add'.[/dim]")
        return

    table = Table(title=f"{len(cards)} cards")
    table.add_column("ID", style="dim")
    table.add_column("Question")
    table.add_column("Answer")
    table.add_column("Audio")
    table.add_column("Interval")
    table.add_column("EF")
    table.add_column("Due")

    for card in cards:
        due = "[yellow]now[/yellow]" if card.is_due(now) else _format_when(card.due_at)
        table.add_row(
            _short_id(card),
            card.prompt,
            card.answer,
            "yes" if card.has_audio else "",
            f"{card.interval}d",
            f"{card.ease_factor:.2f}",
            due,
        )

    console.print(table)


@app.command()
def edit(
    card_id: str = typer.Argument(..., help="Card id (or unique prefix)"),
    question: Optional[str] = typer.Option(None, "--question", "-q", help="New question"),
    answer: Optional[str] = typer.Option(None, "--answer", "-a", help="New answer"),
    audio: Optional[Path] = typer.Option(None, "--audio", help="Replace audio with this file"),
    remove_audio: bool = typer.Option(False, "--remove-audio", help="Drop attached audio"),
) -> None:
    """Change a card's question, answer or audio. Scheduling is kept."""
    session = _open_session()
    try:
        card = session.find(_resolve_card_id(session, card_id))
        new_audio: object = KEEP_AUDIO
        if remove_audio:
            new_audio = None
        elif audio is not None:
            new_audio = _read_audio_file(audio)

        session.update_card(
            card.id,
            question if question is not None else card.prompt,
            answer if answer is not None else card.answer,
            new_audio,
        )
    except FlashdeckError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        session.close()

    console.print("[green]Card updated![/green]")


@app.command()
def delete(
    card_id: str = typer.Argument(..., help="Card id (or unique prefix)"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a card."""
    session = _open_session()
    try:
        card = session.find(_resolve_card_id(session, card_id))
        if not confirm and not Confirm.ask(f"Delete '{card.prompt}'?", default=False):
            raise typer.Exit(0)
        session.delete_card(card.id)
    except FlashdeckError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        session.close()

    console.print("[green]Card deleted.[/green]")


@app.command()
def study() -> None:
    """
    Review due cards, earliest due first.

    Each card is shown, revealed on Enter, and rated with the configured
    rating model until nothing is due or you quit.
    """
    console.print("\n[bold cyan]flashdeck[/bold cyan] - Study", style="bold")
    console.print("=" * 40)

    session = _open_session()
    reviewed = 0

    try:
        card = session.next_card()
        if card is None:
            _display_nothing_due(session)
            return

        while card is not None:
            console.print()
            display_card_front(card, session.due_count())
            Prompt.ask("[dim]Press Enter to reveal[/dim]", default="", show_default=False)
            display_card_back(card)

            rating = _ask_rating(session)
            if rating is None:
                break

            session.rate(rating)
            reviewed += 1
            console.print(
                f"[dim]Next review in {card.interval} day(s) "
                f"({_format_when(card.due_at)})[/dim]"
            )
            card = session.current
        else:
            _display_nothing_due(session)

    except KeyboardInterrupt:
        console.print("\n\n[yellow]Session interrupted.[/yellow]")
    finally:
        session.close()

    console.print(f"\n[bold]Reviewed {reviewed} card(s).[/bold]")


@app.command()
def due() -> None:
    """Show how many cards are due."""
    session = _open_session()
    try:
        count = session.due_count()
        upcoming = session.next_due_at()
        total = len(session.cards)
    finally:
        session.close()

    console.print(f"Cards due: [bold]{count}[/bold] of {total}")
    if count == 0 and upcoming is not None:
        console.print(f"Next card due: {_format_when(upcoming)}")


@app.command("skip-day")
def skip_day(
    days: int = typer.Option(1, "--days", "-d", min=1, help="Days to skip"),
) -> None:
    """Move every due date back, as if days had passed."""
    session = _open_session()
    try:
        shifted = session.skip_day(days)
        count = session.due_count()
    finally:
        session.close()

    console.print(f"Shifted {shifted} card(s) by {days} day(s). Cards due: [bold]{count}[/bold]")


@app.command("export")
def export_command(
    path: Path = typer.Argument(Path("flashcards.json"), help="Output file"),
) -> None:
    """Export all cards to a JSON file."""
    session = _open_session()
    try:
        count = export_to_file(session.cards, path)
    except OSError as e:
        console.print(f"[red]Export failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        session.close()

    console.print(f"[green]Exported {count} cards to {path}[/green]")


@app.command("import")
def import_command(
    path: Path = typer.Argument(..., help="JSON file produced by export"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Replace ALL cards with the contents of a JSON file."""
    session = _open_session()
    try:
        payload = read_import_file(path)
        if session.cards and not confirm:
            if not Confirm.ask(f"Replace all {len(session.cards)} cards?", default=False):
                raise typer.Exit(0)
        count = session.import_json(payload)
    except FlashdeckError as e:
        console.print(f"[red]Invalid file: {e}[/red]")
        raise typer.Exit(1)
    finally:
        session.close()

    console.print(f"[green]Import successful! {count} cards loaded.[/green]")


# =============================================================================
# Entry Point
# =============================================================================

def configure_logging(settings: Settings) -> None:
    """Route loguru output to stderr (and optionally a file)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level="DEBUG",
            rotation="1 MB",
            retention=3,
        )


def main() -> None:
    """CLI entry point."""
    configure_logging(get_settings())
    app()


if __name__ == "__main__":
    main()
