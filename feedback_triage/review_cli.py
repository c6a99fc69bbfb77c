#!/usr/bin/env python3
"""Interactive CLI for working through the review queue.

This allows reviewers to:
1. See the least confident classifications first
2. Confirm or correct the sentiment of each item
3. Skip items they are unsure about
"""
import asyncio
import sys
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box
from rich.prompt import Prompt

from database import init_db, get_db_session
from review import apply_correction, select_for_review
from schemas import Sentiment


console = Console()

CHOICES = {
    "n": Sentiment.NEGATIVE.value,
    "u": Sentiment.NEUTRAL.value,
    "p": Sentiment.POSITIVE.value,
    "k": Sentiment.UNKNOWN.value,
}


class ReviewSession:
    """Interactive review of low-confidence feedback."""

    def __init__(self, session_factory=get_db_session):
        self.session_factory = session_factory
        self.corrected = 0
        self.skipped = set()

    async def next_record(self):
        """Most urgent record not skipped in this session.

        Returns:
            Tuple of (record or None, number of unskipped records waiting)
        """
        async with self.session_factory() as db:
            result = await select_for_review(db, page=1, per_page=1, exclude_ids=self.skipped)
        return (result.data[0] if result.data else None), result.total

    async def correct(self, feedback_id: int, sentiment: str) -> bool:
        async with self.session_factory() as db:
            return await apply_correction(db, feedback_id, sentiment)

    def display_record(self, record, remaining: int):
        """Show one feedback item and its automated classification."""
        table = Table(
            title=f"Feedback #{record.id} ({remaining} waiting)",
            box=box.ROUNDED,
            show_header=True,
            header_style="bold magenta"
        )

        table.add_column("Attribute", style="cyan", width=20)
        table.add_column("Value", style="green")

        table.add_row("Source", record.source)
        table.add_row("Tier", record.user_tier)
        table.add_row("Product", record.product_area)
        table.add_row("Sentiment", record.sentiment)
        table.add_row("Confidence", f"{record.confidence:.2f}")
        table.add_row("Summary", record.ai_analysis or "")

        console.print(table)

        border = "bold red" if record.is_critical else "blue"
        console.print(Panel(record.content, title="Content", border_style=border, padding=(1, 2)))

    def display_welcome(self):
        """Display welcome message."""
        welcome = """
[bold cyan]Feedback Review Queue[/bold cyan]
[dim]Interactive CLI Mode[/dim]

Least confident classifications come first, Enterprise before other tiers.

  [green]n[/green] Negative   [green]u[/green] Neutral   [green]p[/green] Positive   [green]k[/green] Unknown
  [yellow]s[/yellow] skip       [red]q[/red] quit
        """

        console.print(Panel(welcome, border_style="bold blue", box=box.DOUBLE, padding=(1, 2)))
        console.print()

    async def run_interactive(self):
        """Run the interactive review loop."""
        self.display_welcome()

        while True:
            record, remaining = await self.next_record()

            if record is None:
                console.print("\n[green]No more items to review.[/green]")
                break

            self.display_record(record, remaining)

            choice = Prompt.ask(
                "Sentiment",
                choices=list(CHOICES) + ["s", "q"],
                default="s"
            )

            if choice == "q":
                break
            if choice == "s":
                self.skipped.add(record.id)
                continue

            if await self.correct(record.id, CHOICES[choice]):
                self.corrected += 1
                console.print(f"[dim]Feedback #{record.id} marked {CHOICES[choice]}[/dim]")
            else:
                console.print(f"[yellow]⚠️  Feedback #{record.id} no longer exists[/yellow]")
                self.skipped.add(record.id)

        console.print(f"\n[cyan]{self.corrected} correction(s) saved. Goodbye![/cyan]\n")


async def main():
    """Main entry point."""
    console.print("[cyan]Initializing database...[/cyan]")
    await init_db()

    session = ReviewSession()

    try:
        await session.run_interactive()
    except KeyboardInterrupt:
        console.print("\n\n[cyan] Goodbye![/cyan]\n")
        sys.exit(0)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
