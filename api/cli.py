"""Command-line interface for the code smell detector."""

import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from agents.coordinator_agent import CoordinatorAgent
from config.settings import Settings, load_api_key, settings
from models.data_models import AnalysisResult, ChatRole, SessionState
from storage.session_manager import SessionManager
from tools.error_handling import ConfigurationError
from tools.llm_client import CompletionClient
from tools.observability import setup_logging, setup_tracing

console = Console()

SEVERITY_COLORS = {
    "Critical": "red",
    "Major": "yellow",
    "Minor": "blue",
}


def create_coordinator(app_settings: Optional[Settings] = None) -> CoordinatorAgent:
    """Create a CoordinatorAgent with a fresh session holding the configured credential."""
    app_settings = app_settings or settings
    try:
        credential = load_api_key(app_settings)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    session_manager = SessionManager(SessionState(credential=credential))
    client = CompletionClient(
        endpoint=app_settings.completion_endpoint,
        timeout=app_settings.request_timeout_seconds
    )
    return CoordinatorAgent(session_manager=session_manager, client=client)


def read_source(source) -> str:
    """Read source code and enforce the minimum length."""
    code = source.read()
    if len(code) < settings.min_code_length:
        raise click.ClickException(
            f"Source code must be at least {settings.min_code_length} characters long"
        )
    return code


def render_result(result: AnalysisResult, language: str) -> None:
    """Render an analysis result to the console."""
    console.print(Panel(result.summary or "[dim]No summary provided[/dim]", title="Summary", border_style="cyan"))

    if result.smells:
        table = Table(title="Code Smells", show_header=True, header_style="bold magenta")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Smell", style="cyan")
        table.add_column("Severity")
        table.add_column("Location", style="blue")
        table.add_column("Explanation")

        for i, smell in enumerate(result.smells, 1):
            color = SEVERITY_COLORS.get(smell.severity.value, "white")
            table.add_row(
                str(i),
                smell.name,
                f"[{color}]{smell.severity.value}[/{color}]",
                smell.location,
                smell.explanation
            )
        console.print(table)

        counts = result.severity_counts()
        console.print(
            "  ".join(
                f"[{SEVERITY_COLORS[name]}]{name}: {count}[/{SEVERITY_COLORS[name]}]"
                for name, count in counts.items()
            )
        )
    else:
        console.print("[bold green]✓ No code smells found[/bold green]")

    lexer = language.lower() if language not in ("auto", "other", "") else "text"
    console.print(Panel(
        Syntax(result.refactored_code, lexer, line_numbers=True, word_wrap=True),
        title="Refactored Code",
        border_style="green"
    ))


@click.group()
@click.version_option(version="0.1.0")
@click.option("--log-level", default=None, help="Log level (default: from settings)")
@click.option("--log-json/--no-log-json", default=None, help="Render logs as JSON lines")
@click.option("--trace/--no-trace", default=False, help="Export OpenTelemetry spans to the console")
def main(log_level: Optional[str], log_json: Optional[bool], trace: bool) -> None:
    """
    Code Smell Detector & Refactorer CLI.

    Sends source code to a completion endpoint, renders the code smell report
    and the refactored version, and lets you ask follow-up questions.

    \b
    Examples:
        # Analyze a file
        smell-detector analyze app.py --language Python

        # Analyze and start a follow-up conversation
        smell-detector chat app.js
    """
    setup_logging(
        level=log_level or settings.log_level,
        json_output=settings.log_json if log_json is None else log_json
    )
    if trace:
        setup_tracing(enable_console_export=True)


@main.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--language", default="auto", help="Language identifier (default: auto)")
@click.option(
    "--output",
    type=click.Path(dir_okay=False, writable=True),
    help="Write the refactored code to this file"
)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def analyze(source, language: str, output: Optional[str], as_json: bool) -> None:
    """
    Analyze SOURCE for code smells.

    SOURCE is a file path, or '-' to read from standard input.
    """
    code = read_source(source)
    coordinator = create_coordinator()

    with console.status("[cyan]Analyzing code...[/cyan]"):
        outcome = coordinator.analyze(code, language)

    if not outcome.ok:
        console.print(f"[bold red]Error:[/bold red] {outcome.error}")
        sys.exit(1)

    result = outcome.value
    if as_json:
        click.echo(json.dumps(result.model_dump(mode='json'), indent=2, ensure_ascii=False))
    else:
        render_result(result, language)

    if output:
        Path(output).write_text(result.refactored_code, encoding="utf-8")
        console.print(f"\n[dim]Refactored code saved to: {output}[/dim]")


@main.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--language", default="auto", help="Language identifier (default: auto)")
def chat(source, language: str) -> None:
    """
    Analyze SOURCE, then ask follow-up questions about the report.

    \b
    Commands inside the conversation:
        /reset         clear the session and exit
        /export FILE   save the conversation as a text file
        /quit          exit
    """
    code = read_source(source)
    coordinator = create_coordinator()

    with console.status("[cyan]Analyzing code...[/cyan]"):
        outcome = coordinator.analyze(code, language)

    if not outcome.ok:
        console.print(f"[bold red]Error:[/bold red] {outcome.error}")
        sys.exit(1)

    render_result(outcome.value, language)
    console.print("\n[dim]Ask a follow-up question, or /quit to exit.[/dim]")

    while True:
        try:
            question = click.prompt("you", prompt_suffix="> ", default="", show_default=False)
        except click.Abort:
            break

        question = question.strip()
        if not question:
            continue
        if question == "/quit":
            break
        if question == "/reset":
            coordinator.reset()
            console.print("[yellow]Session cleared.[/yellow]")
            break
        if question.startswith("/export"):
            _export_chat(coordinator, question[len("/export"):].strip())
            continue

        with console.status("[cyan]Waiting for reply...[/cyan]"):
            reply = coordinator.send_follow_up(question)

        if reply.ok:
            console.print(Panel(Markdown(reply.value), title=ChatRole.ASSISTANT.value, border_style="green"))
        else:
            console.print(f"[bold red]Error:[/bold red] {reply.error}")


def _export_chat(coordinator: CoordinatorAgent, target: str) -> None:
    log = coordinator.session.chat_log()
    if not log:
        console.print("[yellow]No chat history to export yet.[/yellow]")
        return
    if not target:
        console.print("[yellow]Usage: /export FILE[/yellow]")
        return
    Path(target).write_text(log, encoding="utf-8")
    console.print(f"[dim]Chat saved to: {target}[/dim]")


@main.command()
def examples() -> None:
    """Show usage examples and help."""
    examples_text = """
# Code Smell Detector & Refactorer - Usage Examples

## Configure the API key
Set it in the environment:
```bash
export GEMINI_API_KEY=...
```

Or in `config.json`:
```json
{"gemini": {"api_key": "..."}}
```

## Analyze a file
```bash
smell-detector analyze app.py --language Python
```

## Read from standard input
```bash
cat app.js | smell-detector analyze - --language JavaScript
```

## Save the refactored code
```bash
smell-detector analyze app.py --output app_refactored.py
```

## Machine-readable output
```bash
smell-detector analyze app.py --json
```

## Follow-up conversation
```bash
smell-detector chat app.py
```
Inside the conversation use `/export chat.txt` to save the transcript,
`/reset` to clear the session and `/quit` to exit.
    """

    console.print(Markdown(examples_text))


if __name__ == "__main__":
    main()
