# pdfrag/interface/cli.py

from typing import List
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.prompt import Prompt
from rich import box
from rich.text import Text

from pdfrag.domain.models import IngestionReport, ScoredResult


console = Console()


def display_welcome_banner() -> None:
    console.print(Panel.fit(
        "[bold cyan]🔍 PDF Passage Search[/bold cyan]\n"
        "[dim]Hybrid BM25 keyword + cosine similarity retrieval[/dim]",
        box=box.DOUBLE,
        border_style="cyan",
    ))


def display_indexing_status(num_records: int, documents: List[str]) -> None:
    console.print(
        f"\n[green]✓[/green] Index ready — [bold]{num_records}[/bold] passages "
        f"from [bold]{len(documents)}[/bold] documents.\n"
    )


def display_ingestion_report(report: IngestionReport) -> None:
    console.print(
        f"[green]+[/green] {report.pdf_name}: "
        f"{report.pages_indexed} pages indexed, {report.pages_skipped} skipped, "
        f"{report.chunks_stored} passages stored"
    )


def display_documents(stats: List[dict]) -> None:
    table = Table(title="Indexed documents", box=box.SIMPLE_HEAVY)
    table.add_column("Document", style="bold white")
    table.add_column("Passages", justify="right")
    for row in stats:
        table.add_row(row["pdf_name"], str(row["count"]))
    console.print(table)


def prompt_for_query() -> str:
    return Prompt.ask("\n[bold yellow]❓ Your question[/bold yellow]")


def display_results(query: str, results: List[ScoredResult]) -> None:
    if not results:
        console.print(
            f"\n[dim]No relevant passages found for[/dim] [italic]\"{query}\"[/italic].\n"
        )
        return

    console.print(f"\n[bold]Results for:[/bold] [italic]\"{query}\"[/italic]\n")

    for rank, result in enumerate(results, start=1):
        score_color = _score_to_color(result.final_score)
        score_display = f"[{score_color}]{result.final_score:.4f}[/{score_color}]"

        panel_content = Text()
        panel_content.append("📄 Source: ", style="dim")
        panel_content.append(
            f"{result.metadata.pdf_name} (page {result.metadata.page_number})",
            style="bold white",
        )
        panel_content.append("\n🎯 Score: ")
        panel_content.append_text(Text.from_markup(score_display))
        panel_content.append(_signal_breakdown(result), style="dim")
        panel_content.append(f"\n\n{result.text}")

        console.print(Panel(
            panel_content,
            title=f"[bold]#{rank}[/bold]",
            border_style=score_color,
            box=box.ROUNDED,
            padding=(1, 2),
        ))


def display_error(message: str) -> None:
    console.print(f"\n[bold red]✗ Error:[/bold red] {message}\n")


def ask_continue() -> bool:
    answer = Prompt.ask(
        "\n[dim]Search again?[/dim]",
        choices=["y", "n"],
        default="y",
    )
    return answer.lower() == "y"


def _signal_breakdown(result: ScoredResult) -> str:
    parts = []
    if result.keyword_score is not None:
        parts.append(f"keyword {result.keyword_score:.2f}")
    if result.exact_match_score is not None:
        parts.append(f"exact {result.exact_match_score:.2f}")
    if result.similarity is not None:
        parts.append(f"semantic {result.similarity:.2f}")
    return f"  ({', '.join(parts)})" if parts else ""


def _score_to_color(score: float) -> str:
    if score >= 0.75:
        return "green"
    elif score >= 0.50:
        return "yellow"
    else:
        return "red"
