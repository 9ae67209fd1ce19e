"""CLI entry point: novelloom co-writing tool.

Usage:
  novelloom new -t "Title" -p "Premise"   plan an outline and cast
  novelloom write -n 1 -c 1-3             write chapters
  novelloom auto -n 1                     write every pending chapter
  novelloom --help                        list all commands
"""

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

# Ensure UTF-8 output on Windows to avoid GBK encoding errors with Rich
if sys.platform == "win32":
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")

import click
from rich.panel import Panel

from cli.theme import (
    get_console,
    app_header,
    command_panel,
    success_panel,
    novel_summary_panel,
    outline_tree,
    chapter_table,
    character_cards,
)
from config.exceptions import NovelAgentError
from config.logging_config import setup_logging
from config.settings import Settings, get_settings
from models.database import Database
from models.enums import Language, NovelType
from models.novel import NovelDocument, NovelSettings
from tools.agent_sdk_client import AgentSDKClient
from tools.text_utils import count_words
from workflow.autosave import AutosaveCoordinator
from workflow.callbacks import RichProgressCallback
from workflow.orchestrator import NovelOrchestrator
from workflow.store import NovelStore

console = get_console()
logger = logging.getLogger(__name__)


def _init_logging(verbose: bool):
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    settings = get_settings()
    setup_logging(level=level, log_dir=settings.log_dir, console_enabled=verbose)


def _load_or_exit(db: Database, novel_id: int) -> NovelDocument:
    doc = db.load_novel(novel_id)
    if not doc:
        console.print(f"[error]No novel with ID {novel_id}[/]")
        sys.exit(1)
    return doc


async def _run_session(doc: NovelDocument, settings: Settings, callback, action):
    """Run ``action(orchestrator)`` with autosave wired and Ctrl+C mapped to stop.

    The document is saved explicitly when the action ends, so save errors
    reach the user.
    """
    db = Database(settings.sqlite_db_path)
    store = NovelStore(doc)
    autosave = AutosaveCoordinator(store, db, settings.autosave_debounce).start()
    orchestrator = NovelOrchestrator(store, AgentSDKClient(settings), settings, callback)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.stop)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        # Windows event loops do not support signal handlers
        handler_installed = False

    try:
        result = await action(orchestrator)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)
        autosave.stop()
        await autosave.save_now()
    return result, store.snapshot()


def _parse_chapter_numbers(arg: str) -> list[int]:
    """Parse chapter selection argument into a list of chapter numbers.

    Supported formats:
      "3"      -> [3]           (single chapter)
      "1-3"    -> [1, 2, 3]     (range)
      "1,5,10" -> [1, 5, 10]    (comma-separated)
    """
    arg = arg.strip()
    try:
        # Range: e.g. "1-30"
        if "-" in arg and "," not in arg:
            parts = arg.split("-", 1)
            start, end = int(parts[0]), int(parts[1])
            if start > end:
                console.print(f"[error]Invalid range: {arg} (start is after end)[/]")
                sys.exit(1)
            return list(range(start, end + 1))

        # Comma-separated: e.g. "1,5,10"
        if "," in arg:
            return sorted(set(int(x.strip()) for x in arg.split(",")))

        # Single number
        return [int(arg)]

    except (ValueError, IndexError):
        console.print(f"[error]Invalid chapter selection: {arg} (use 3, 1-3 or 1,5,10)[/]")
        sys.exit(1)


def _print_usage_summary(doc: NovelDocument) -> None:
    console.print(
        f"\n[muted]Backend usage: {doc.usage.input_tokens:,} input / "
        f"{doc.usage.output_tokens:,} output tokens[/]"
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose):
    """novelloom: co-write a novel with a streaming LLM backend.

    \b
      novelloom new -t "The Lighthouse" -p "A keeper finds a door in the sea"
      novelloom write -n 1 -c 1
      novelloom auto -n 1
      novelloom status
    """
    _init_logging(verbose)


# ---------------------------------------------------------------------------
# new command
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--title", "-t", required=True, help="Novel title")
@click.option("--premise", "-p", required=True, help="Core premise of the story")
@click.option("--genre", "-g", default="", help="Genre, e.g. fantasy, mystery")
@click.option("--chapters", "-c", default=20, show_default=True, help="Number of chapters to plan")
@click.option("--words", "-w", default=60000, show_default=True, help="Target length of the whole book")
@click.option("--chapter-words", default=None, type=int, help="Explicit per-chapter target")
@click.option("--language", "-l", type=click.Choice([l.value for l in Language]), default="en",
              show_default=True, help="Output language")
@click.option("--short", is_flag=True, help="Short-form story (one target for the whole text)")
@click.option("--world", default="", help="World setting notes")
def new(title, premise, genre, chapters, words, chapter_words, language, short, world):
    """Create a novel and plan its outline and cast (no chapters are written).

    Example:
      novelloom new -t "Salt" -p "A lighthouse keeper hears the sea speak" -c 12
    """
    settings = get_settings()
    novel = NovelSettings(
        title=title,
        premise=premise,
        genre=genre,
        language=Language(language),
        novel_type=NovelType.SHORT if short else NovelType.LONG,
        target_word_count=words,
        target_chapter_word_count=chapter_words,
        chapter_count=chapters,
        world_setting=world,
    )

    console.print(app_header())
    console.print()
    console.print(command_panel("New novel", {
        "Title": title,
        "Premise": premise,
        "Genre": genre or "-",
        "Plan": f"{chapters} chapters, {words:,} words",
    }))
    console.print()

    callback = RichProgressCallback(console=console)

    async def plan(orchestrator: NovelOrchestrator):
        with console.status("Planning outline and cast..."):
            return await orchestrator.plan_outline()

    try:
        ok, doc = asyncio.run(_run_session(NovelDocument(settings=novel), settings, callback, plan))
    except NovelAgentError as e:
        console.print(f"\n[error]Failed: {e}[/]")
        sys.exit(1)

    if not ok:
        for message in callback.errors:
            console.print(f"[error]{message}[/]")
        console.print(f"[warning]Planning did not complete. Draft saved as ID {doc.id}.[/]")
        sys.exit(1)

    console.print(novel_summary_panel(doc))
    console.print()
    console.print(outline_tree(doc.chapters))
    console.print()
    if doc.characters:
        console.print("[bold]Main characters[/]")
        console.print(character_cards(list(doc.characters)))
        console.print()
    console.print(f"Next: [info]novelloom write -n {doc.id} -c 1[/]  or  [info]novelloom auto -n {doc.id}[/]")
    _print_usage_summary(doc)


# ---------------------------------------------------------------------------
# write command
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--novel-id", "-n", required=True, type=int, help="Novel ID")
@click.option("--chapters", "-c", required=True, type=str,
              help="Chapter selection: 3, 1-3 or 1,5,10")
@click.option("--force", "-f", is_flag=True, help="Rewrite chapters that are already done")
@click.option("--yes", "-y", is_flag=True, help="Do not ask before rewriting")
def write(novel_id, chapters, force, yes):
    """Write selected chapters one at a time.

    Example:
      novelloom write -n 1 -c 1
      novelloom write -n 1 -c 2 --force
    """
    settings = get_settings()
    db = Database(settings.sqlite_db_path)
    doc = _load_or_exit(db, novel_id)
    chapter_list = _parse_chapter_numbers(chapters)

    missing = [n for n in chapter_list if doc.get_chapter(n) is None]
    if missing:
        console.print(f"[error]Chapters not in the outline: {missing}[/]")
        sys.exit(1)

    if force and not yes:
        done = [n for n in chapter_list if doc.get_chapter(n).is_done]
        if done and not click.confirm(
            f"Rewrite chapters {done}? Their current content will be lost", default=False,
        ):
            console.print("[warning]Cancelled[/]")
            return

    console.print(app_header())
    console.print()
    console.print(command_panel("Write chapters", {
        "Novel": doc.title,
        "Chapters": ", ".join(str(n) for n in chapter_list),
    }))
    console.print()

    callback = RichProgressCallback(console=console)

    async def run(orchestrator: NovelOrchestrator):
        results = []
        for chapter_id in chapter_list:
            result = await orchestrator.generate_chapter(chapter_id, force=force)
            results.append(result)
            if not result.is_done:
                break
        return results

    callback.start()
    try:
        results, doc = asyncio.run(_run_session(doc, settings, callback, run))
    except NovelAgentError as e:
        console.print(f"\n[error]Failed: {e}[/]")
        sys.exit(1)
    finally:
        callback.stop()

    written = [r for r in results if r.is_done]
    console.print()
    console.print(success_panel("Writing finished", (
        f"  Written: [stat.value]{len(written)}[/] of {len(chapter_list)}\n"
        f"  Total words: [stat.value]{doc.total_words():,}[/]"
    )))
    if results and results[-1].cancelled:
        console.print("[warning]Stopped. Partial content was kept.[/]")
    _print_usage_summary(doc)
    if callback.errors:
        sys.exit(1)


# ---------------------------------------------------------------------------
# auto command
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--novel-id", "-n", required=True, type=int, help="Novel ID")
def auto(novel_id):
    """Write every pending chapter in order (Ctrl+C stops after the current fragment).

    Example:
      novelloom auto -n 1
    """
    settings = get_settings()
    db = Database(settings.sqlite_db_path)
    doc = _load_or_exit(db, novel_id)

    pending = doc.pending_chapters()
    if not pending:
        console.print("[success]All chapters are already done.[/]")
        return

    console.print(app_header())
    console.print()
    console.print(command_panel("Auto-generate", {
        "Novel": doc.title,
        "Pending": f"{len(pending)} of {len(doc.chapters)} chapters",
    }))
    console.print()

    callback = RichProgressCallback(console=console, total_chapters=len(doc.chapters))
    callback.start()
    try:
        result, doc = asyncio.run(_run_session(
            doc, settings, callback, lambda orchestrator: orchestrator.auto_generate(),
        ))
    except NovelAgentError as e:
        console.print(f"\n[error]Failed: {e}[/]")
        sys.exit(1)
    finally:
        callback.stop()

    console.print()
    body = (
        f"  Generated: [stat.value]{len(result.generated)}[/]\n"
        f"  Skipped (content policy): [stat.value]{len(result.skipped)}[/]\n"
        f"  Total words: [stat.value]{doc.total_words():,}[/]"
    )
    if result.halted:
        console.print(Panel(
            body + f"\n  [error]Stopped at chapter {result.failed_chapter_id}: {result.error}[/]",
            title="[error]Auto-generation paused[/]", border_style="red", padding=(0, 2),
        ))
        console.print(f"Resume with: [info]novelloom auto -n {novel_id}[/]")
    elif result.cancelled:
        console.print(success_panel("Auto-generation stopped", body))
    else:
        console.print(success_panel("Auto-generation finished", body))
    _print_usage_summary(doc)
    if result.halted:
        sys.exit(1)


# ---------------------------------------------------------------------------
# status / show
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--novel-id", "-n", default=None, type=int, help="Show one novel (lists all when omitted)")
def status(novel_id):
    """Show novels and their progress.

    Example:
      novelloom status
      novelloom status -n 1
    """
    settings = get_settings()
    db = Database(settings.sqlite_db_path)

    console.print(app_header())
    console.print()

    if novel_id:
        doc = _load_or_exit(db, novel_id)
        console.print(novel_summary_panel(doc))
        console.print()
        if doc.chapters:
            console.print(chapter_table(doc.chapters))
            console.print()
        if doc.characters:
            console.print("[bold]Main characters[/]")
            console.print(character_cards(list(doc.characters)))
        return

    novels = db.list_novels()
    if not novels:
        console.print("[warning]No novels yet. Create one with [info]novelloom new[/].[/]")
        return

    from rich.table import Table

    table = Table(title="Novels", show_lines=True, border_style="dim")
    table.add_column("ID", style="chapter.num")
    table.add_column("Title", style="bold")
    table.add_column("Updated")
    for n in novels:
        updated = n["updated_at"].strftime("%Y-%m-%d %H:%M") if n["updated_at"] else "-"
        table.add_row(str(n["id"]), n["title"], updated)
    console.print(table)


@cli.command()
@click.option("--novel-id", "-n", required=True, type=int, help="Novel ID")
@click.option("--chapter", "-c", required=True, type=int, help="Chapter number")
@click.option("--outline", "-o", is_flag=True, help="Show the outline entry instead of the prose")
def show(novel_id, chapter, outline):
    """Print one chapter.

    Example:
      novelloom show -n 1 -c 1
    """
    settings = get_settings()
    db = Database(settings.sqlite_db_path)
    doc = _load_or_exit(db, novel_id)

    ch = doc.get_chapter(chapter)
    if not ch:
        console.print(f"[error]Chapter {chapter} not found[/]")
        sys.exit(1)

    console.print(Panel(
        f"  [stat.label]Novel:[/] {doc.title} [muted](ID: {novel_id})[/]\n"
        f"  [stat.label]Chapter:[/] {ch.id}  [stat.label]Title:[/] {ch.title or '-'}\n"
        f"  [stat.label]Words:[/] [stat.value]{count_words(ch.content)}[/]  "
        f"[stat.label]Done:[/] {'yes' if ch.is_done else 'no'}",
        title="[bold]Chapter[/]",
        border_style="dim",
        padding=(0, 2),
    ))
    console.print()

    if outline:
        console.print(ch.summary or "[muted](no summary)[/]")
    elif ch.content:
        console.print(ch.content)
    else:
        console.print("[muted](no content yet)[/]")

    if ch.consistency_analysis:
        console.print()
        console.print(Panel(ch.consistency_analysis, title="Consistency", border_style="dim"))


# ---------------------------------------------------------------------------
# check / fix
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--novel-id", "-n", required=True, type=int, help="Novel ID")
@click.option("--chapter", "-c", required=True, type=int, help="Chapter number")
def check(novel_id, chapter):
    """Check a chapter against the character profiles."""
    settings = get_settings()
    db = Database(settings.sqlite_db_path)
    doc = _load_or_exit(db, novel_id)
    callback = RichProgressCallback(console=console)

    async def run(orchestrator: NovelOrchestrator):
        with console.status(f"Checking chapter {chapter}..."):
            return await orchestrator.check_consistency(chapter)

    analysis, doc = asyncio.run(_run_session(doc, settings, callback, run))
    if analysis is None:
        for message in callback.errors:
            console.print(f"[error]{message}[/]")
        sys.exit(1)
    console.print(Panel(analysis, title=f"Chapter {chapter} consistency", border_style="dim"))


@cli.command()
@click.option("--novel-id", "-n", required=True, type=int, help="Novel ID")
@click.option("--chapter", "-c", required=True, type=int, help="Chapter number")
def fix(novel_id, chapter):
    """Rewrite a checked chapter so the reported issues are resolved."""
    settings = get_settings()
    db = Database(settings.sqlite_db_path)
    doc = _load_or_exit(db, novel_id)
    callback = RichProgressCallback(console=console)

    async def run(orchestrator: NovelOrchestrator):
        with console.status(f"Fixing chapter {chapter}..."):
            return await orchestrator.fix_consistency(chapter)

    changed, doc = asyncio.run(_run_session(doc, settings, callback, run))
    if callback.errors:
        for message in callback.errors:
            console.print(f"[error]{message}[/]")
        sys.exit(1)
    if changed:
        console.print(f"[success]Chapter {chapter} rewritten ({count_words(doc.get_chapter(chapter).content)} words)[/]")
    else:
        console.print("[muted]Chapter is already consistent, nothing to fix.[/]")



@cli.command("continue")
@click.option("--novel-id", "-n", required=True, type=int, help="Novel ID")
@click.option("--chapter", "-c", required=True, type=int, help="Chapter number")
def continue_(novel_id, chapter):
    """Write the next scene onto a chapter that already has prose.

    Example:
      novelloom continue -n 1 -c 3
    """
    settings = get_settings()
    db = Database(settings.sqlite_db_path)
    doc = _load_or_exit(db, novel_id)
    if doc.get_chapter(chapter) is None:
        console.print(f"[error]Chapter {chapter} not found[/]")
        sys.exit(1)

    callback = RichProgressCallback(console=console, total_chapters=1)
    callback.start()
    try:
        result, doc = asyncio.run(_run_session(
            doc, settings, callback, lambda orchestrator: orchestrator.continue_chapter(chapter),
        ))
    finally:
        callback.stop()

    if callback.errors:
        for message in callback.errors:
            console.print(f"[error]{message}[/]")
        sys.exit(1)
    if result.cancelled:
        console.print("[warning]Stopped. Partial content was kept.[/]")
    console.print(f"[success]Chapter {chapter} is now {result.word_count} words[/]")
    _print_usage_summary(doc)


# ---------------------------------------------------------------------------
# grammar / coherence
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--novel-id", "-n", required=True, type=int, help="Novel ID")
@click.option("--chapter", "-c", required=True, type=int, help="Chapter number")
@click.option("--fix", "apply_fix", is_flag=True, help="Correct the chapter in place instead of listing issues")
def grammar(novel_id, chapter, apply_fix):
    """Proofread a chapter, or correct it in place with --fix."""
    settings = get_settings()
    db = Database(settings.sqlite_db_path)
    doc = _load_or_exit(db, novel_id)
    callback = RichProgressCallback(console=console)

    async def run(orchestrator: NovelOrchestrator):
        with console.status(f"Proofreading chapter {chapter}..."):
            if apply_fix:
                return await orchestrator.fix_grammar(chapter)
            return await orchestrator.check_grammar(chapter)

    outcome, doc = asyncio.run(_run_session(doc, settings, callback, run))
    if callback.errors:
        for message in callback.errors:
            console.print(f"[error]{message}[/]")
        sys.exit(1)

    if apply_fix:
        if outcome:
            console.print(f"[success]Chapter {chapter} corrected[/]")
        else:
            console.print("[muted]No corrections were needed.[/]")
        return

    if not outcome:
        console.print("[success]No grammar issues found.[/]")
        return
    from rich.table import Table

    table = Table(title=f"Chapter {chapter} grammar", show_lines=True, border_style="dim")
    table.add_column("Original", style="error")
    table.add_column("Suggestion", style="success")
    table.add_column("Why", style="muted")
    for issue in outcome:
        table.add_row(issue.original, issue.suggestion, issue.explanation)
    console.print(table)


@cli.command()
@click.option("--novel-id", "-n", required=True, type=int, help="Novel ID")
def coherence(novel_id):
    """Review the whole book for plot holes and continuity breaks."""
    settings = get_settings()
    db = Database(settings.sqlite_db_path)
    doc = _load_or_exit(db, novel_id)
    callback = RichProgressCallback(console=console)

    async def run(orchestrator: NovelOrchestrator):
        with console.status("Analysing the whole book..."):
            return await orchestrator.analyze_coherence()

    report, doc = asyncio.run(_run_session(doc, settings, callback, run))
    if report is None:
        for message in callback.errors:
            console.print(f"[error]{message}[/]")
        sys.exit(1)
    console.print(Panel(report, title=f"{doc.title}: coherence", border_style="dim"))

# ---------------------------------------------------------------------------
# export / delete
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--novel-id", "-n", required=True, type=int, help="Novel ID")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False, path_type=Path),
              help="Output file (defaults to <title>.txt)")
def export(novel_id, output):
    """Export the manuscript as plain text."""
    settings = get_settings()
    db = Database(settings.sqlite_db_path)
    doc = _load_or_exit(db, novel_id)

    output = output or Path(f"{doc.title or 'novel'}.txt")
    output.write_text(doc.to_manuscript(), encoding="utf-8")
    console.print(f"[success]Exported {len(doc.chapters)} chapters to {output}[/]")


@cli.command()
@click.option("--novel-id", "-n", required=True, type=int, help="Novel ID to delete")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation")
def delete(novel_id, force):
    """Delete a novel with all its chapters and characters."""
    settings = get_settings()
    db = Database(settings.sqlite_db_path)
    doc = _load_or_exit(db, novel_id)

    if not force and not click.confirm(
        f"Delete '{doc.title}' (ID {novel_id})? This cannot be undone", default=False,
    ):
        console.print("[warning]Cancelled[/]")
        return

    db.delete_novel(novel_id)
    console.print(f"[success]Deleted '{doc.title}'[/]")


@cli.command("remove-chapter")
@click.option("--novel-id", "-n", required=True, type=int, help="Novel ID")
@click.option("--chapter", "-c", required=True, type=int, help="Chapter number")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation")
def remove_chapter(novel_id, chapter, force):
    """Remove one chapter from the outline. Other chapters keep their numbers."""
    settings = get_settings()
    db = Database(settings.sqlite_db_path)
    doc = _load_or_exit(db, novel_id)
    ch = doc.get_chapter(chapter)
    if ch is None:
        console.print(f"[error]Chapter {chapter} not found[/]")
        sys.exit(1)

    if not force and not click.confirm(
        f"Remove chapter {chapter} '{ch.title}' and its content?", default=False,
    ):
        console.print("[warning]Cancelled[/]")
        return

    callback = RichProgressCallback(console=console)

    async def run(orchestrator: NovelOrchestrator):
        return orchestrator.delete_chapter(chapter)

    removed, doc = asyncio.run(_run_session(doc, settings, callback, run))
    if not removed:
        for message in callback.errors:
            console.print(f"[error]{message}[/]")
        sys.exit(1)
    console.print(f"[success]Removed chapter {chapter}. {len(doc.chapters)} chapters remain.[/]")


def main():
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
