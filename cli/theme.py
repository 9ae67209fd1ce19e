"""Unified Rich theme and reusable UI helper functions for the CLI."""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.theme import Theme
from rich.tree import Tree

from models.chapter import SAFETY_SKIP_MARKER
from tools.text_utils import count_words

NOVEL_THEME = Theme({
    "app.title": "bold",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "info": "blue",
    "muted": "dim",
    "accent": "cyan",
    "genre": "bold",
    "stat.label": "dim",
    "stat.value": "bold",
    "chapter.num": "blue",
    "character.name": "bold cyan",
})


def get_console() -> Console:
    """Return a Console instance with the novel theme applied."""
    return Console(theme=NOVEL_THEME)


def app_header(title: str = "novelloom") -> Rule:
    """Return a Rule element for the application header banner."""
    return Rule(title=f"[bold]{title}[/]", style="dim")


def command_panel(title: str, fields: dict[str, str]) -> Panel:
    """Return a Panel displaying command parameters.

    Args:
        title: Panel title (e.g. "New novel").
        fields: Ordered dict of label -> value pairs.
    """
    lines = []
    for label, value in fields.items():
        lines.append(f"  [stat.label]{label}:[/] [stat.value]{value}[/]")
    body = "\n".join(lines)
    return Panel(body, title=f"[bold]{title}[/]", box=box.ROUNDED, border_style="dim", padding=(0, 2))


def success_panel(title: str, body: str) -> Panel:
    """Return a green-bordered Panel for success results."""
    return Panel(body, title=f"[success]{title}[/]", box=box.ROUNDED, border_style="green", padding=(0, 2))


def novel_summary_panel(doc) -> Panel:
    """Return a Panel with document summary stats."""
    premise = doc.settings.premise or ""
    if len(premise) > 150:
        premise = premise[:150] + "..."
    done = sum(1 for c in doc.chapters if c.is_done)

    body = (
        f"  [stat.label]Genre:[/] [genre]{doc.settings.genre or '-'}[/]  "
        f"[muted]|[/]  [stat.label]Status:[/] {doc.status.value}  "
        f"[muted]|[/]  [stat.label]Chapters:[/] [stat.value]{done}/{len(doc.chapters)}[/]  "
        f"[muted]|[/]  [stat.label]Words:[/] [stat.value]{doc.total_words():,}[/]\n"
        f"  [stat.label]Tokens:[/] {doc.usage.input_tokens:,} in / {doc.usage.output_tokens:,} out\n"
        f"  [stat.label]Premise:[/] {premise}"
    )
    return Panel(
        body,
        title=f"[bold]{doc.title}[/] [muted](ID: {doc.id})[/]",
        box=box.ROUNDED,
        border_style="dim",
        padding=(0, 2),
    )


def chapter_status_label(chapter) -> str:
    if chapter.is_generating:
        return "[yellow]generating[/]"
    if chapter.is_done and chapter.content.endswith(SAFETY_SKIP_MARKER):
        return "[warning]skipped[/]"
    if chapter.is_done:
        return "[green]done[/]"
    if chapter.content:
        return "[yellow]partial[/]"
    return "[dim]pending[/]"


def outline_tree(chapters) -> Tree:
    """Build a Rich Tree of the outline, grouped by volume when present."""
    tree = Tree("[bold]Outline[/]")
    branches: dict = {}
    for ch in chapters:
        parent = tree
        if ch.volume_id is not None:
            if ch.volume_id not in branches:
                branches[ch.volume_id] = tree.add(
                    f"[bold cyan]Volume {ch.volume_id}[/] {ch.volume_title or ''}"
                )
            parent = branches[ch.volume_id]
        summary = ch.summary
        short = (summary[:60] + "...") if len(summary) > 60 else summary
        parent.add(f"[chapter.num]{ch.id}.[/] [bold]{ch.title}[/] [muted]{short}[/]")
    return tree


def chapter_table(chapters) -> Table:
    table = Table(title="Chapters", border_style="dim")
    table.add_column("#", style="chapter.num")
    table.add_column("Title")
    table.add_column("Words", justify="right")
    table.add_column("Status")
    table.add_column("Consistency")

    for ch in chapters:
        analysis = ch.consistency_analysis or "-"
        if len(analysis) > 30:
            analysis = analysis[:30] + "..."
        table.add_row(
            str(ch.id),
            ch.title or "-",
            str(count_words(ch.content)),
            chapter_status_label(ch),
            analysis,
        )
    return table


def character_cards(characters: list) -> Table:
    """Build a Rich Table layout of character information."""
    table = Table(box=box.ROUNDED, border_style="dim", show_header=True, padding=(0, 1))
    table.add_column("Name", style="character.name")
    table.add_column("Role", style="muted")
    table.add_column("Description")

    for c in characters[:8]:
        desc = c.description
        if len(desc) > 40:
            desc = desc[:40] + "..."
        table.add_row(c.name, c.role, desc)

    if len(characters) > 8:
        table.add_row(f"[muted]+{len(characters) - 8} more[/]", "", "")

    return table
