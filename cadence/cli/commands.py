"""CLI commands for cadence."""

import asyncio
import sys

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cadence import __logo__, __version__
from cadence.session.models import SessionMode, SessionStatus, SessionSubMode

app = typer.Typer(
    name="cadence",
    help=f"{__logo__} cadence - Project conversation engine",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} cadence v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
):
    """cadence - Project conversation engine."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def _parse_mode(mode: str, sub_mode: str | None) -> tuple[SessionMode, SessionSubMode | None]:
    try:
        parsed_mode = SessionMode(mode)
        parsed_sub = SessionSubMode(sub_mode) if sub_mode else None
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    if parsed_sub is not None and parsed_mode != SessionMode.EXECUTION_SUPPORT:
        console.print("[red]Error: --sub-mode only applies to execution_support[/red]")
        raise typer.Exit(1)
    return parsed_mode, parsed_sub


def _template_store(config):
    from cadence.prompts.templates import JsonTemplateOverrides, PromptTemplateStore

    return PromptTemplateStore(JsonTemplateOverrides(config.overrides_path))


# ============================================================================
# Prompts
# ============================================================================


@app.command()
def prompt(
    mode: str = typer.Argument(..., help="exploration, definition, planning or execution_support"),
    sub_mode: str = typer.Option(None, "--sub-mode", "-s", help="Execution-support sub-mode"),
):
    """Print the composed system prompt for a mode."""
    from cadence.agent.composer import PromptComposer
    from cadence.config.loader import load_config
    from cadence.prompts.deliverables import catalogue_summary

    parsed_mode, parsed_sub = _parse_mode(mode, sub_mode)
    variables = {}
    if parsed_mode == SessionMode.EXPLORATION:
        variables["deliverable_catalogue"] = catalogue_summary()
    elif parsed_mode == SessionMode.EXECUTION_SUPPORT:
        variables["sub_mode"] = (parsed_sub or SessionSubMode.CHECK_IN).value

    composer = PromptComposer(_template_store(load_config()))
    console.print(composer.compose(parsed_mode, parsed_sub, variables), markup=False, highlight=False)


# ============================================================================
# Sessions
# ============================================================================


@app.command()
def sessions(
    project_id: str = typer.Argument(..., help="Project ID"),
):
    """List stored sessions of a project."""
    from cadence.config.loader import load_config
    from cadence.session.jsonl_store import JsonlSessionStore

    store = JsonlSessionStore(load_config().storage_path)
    found = asyncio.run(store.sessions_for_project(project_id))

    if not found:
        console.print("No sessions.")
        return

    table = Table(title=f"Sessions of {project_id}")
    table.add_column("ID", style="cyan")
    table.add_column("Mode")
    table.add_column("Status")
    table.add_column("Last Active")
    table.add_column("Summary")

    for session in sorted(found, key=lambda s: s.created_at):
        mode = session.mode.value
        if session.sub_mode:
            mode += f" ({session.sub_mode.value})"
        status = session.status.value
        if session.status == SessionStatus.ACTIVE:
            status = f"[green]{status}[/green]"
        table.add_row(
            session.id,
            mode,
            status,
            session.last_active_at.strftime("%Y-%m-%d %H:%M"),
            "[green]✓[/green]" if session.summary_id else "",
        )

    console.print(table)


# ============================================================================
# Chat
# ============================================================================


def _build_manager(config, store):
    from cadence.agent.composer import PromptComposer
    from cadence.agent.context import ContextAssembler
    from cadence.agent.conversation import ConversationManager
    from cadence.agent.summary import SummaryGenerationService
    from cadence.providers.litellm_provider import LiteLLMClient
    from cadence.session.lifecycle import SessionLifecycleManager

    composer = PromptComposer(_template_store(config))
    client = LiteLLMClient(api_key=config.model.api_key or None, api_base=config.model.api_base)
    summaries = SummaryGenerationService(
        store, client, composer, request_config=config.summary_request_config()
    )
    return ConversationManager(
        lifecycle=SessionLifecycleManager(store),
        composer=composer,
        assembler=ContextAssembler(
            total_budget=config.context.total_budget,
            response_reserve=config.context.response_reserve,
        ),
        client=client,
        summaries=summaries,
        request_config=config.model.request_config(),
    )


def _print_result(result):
    from cadence.agent.signals import signal_value

    if result.natural_language:
        console.print(f"\n[bold]{__logo__}[/bold] {escape(result.natural_language)}\n")
    for signal in result.signals:
        value = signal_value(signal)
        if value and "\n" in value:
            console.print(f"[dim]⟨{signal.tag}⟩[/dim]")
            console.print(value, markup=False, highlight=False)
        else:
            console.print(f"[dim]⟨{signal.tag}{': ' + escape(value) if value else ''}⟩[/dim]")
    for action in result.actions:
        console.print(f"[yellow]action[/yellow] {action.type_name}: {escape(str(action))}")


@app.command()
def chat(
    project_id: str = typer.Argument(..., help="Project ID"),
    mode: str = typer.Option("exploration", "--mode", "-m", help="Session mode"),
    sub_mode: str = typer.Option(None, "--sub-mode", "-s", help="Execution-support sub-mode"),
    name: str = typer.Option(None, "--name", "-n", help="Project name for context"),
):
    """Talk to the assistant about a project. /pause, /end and /complete close the chat."""
    from cadence.config.loader import load_config
    from cadence.project.models import Project, ProjectData
    from cadence.providers.base import ModelClientError
    from cadence.session.errors import CadenceError, NoMessagesError
    from cadence.session.jsonl_store import JsonlSessionStore

    parsed_mode, parsed_sub = _parse_mode(mode, sub_mode)
    config = load_config()
    store = JsonlSessionStore(config.storage_path)
    manager = _build_manager(config, store)

    async def project_data() -> ProjectData:
        known = await store.sessions_for_project(project_id)
        summaries = [s for s in [await store.get_summary(x.id) for x in known] if s]
        return ProjectData(
            project=Project(name=name or project_id, id=project_id),
            sessions=known,
            session_summaries=summaries,
        )

    async def run():
        paused = await manager.paused_session(project_id)
        if paused and paused.mode == parsed_mode and paused.sub_mode == parsed_sub:
            session = await manager.resume_session(paused.id)
            console.print(f"[dim]Resumed session {session.id}[/dim]")
        else:
            session = await manager.start_session(project_id, parsed_mode, parsed_sub)
            console.print(f"[dim]Started session {session.id}[/dim]")

        while True:
            try:
                text = console.input("[bold blue]You:[/bold blue] ").strip()
            except (EOFError, KeyboardInterrupt):
                text = "/pause"
            if not text:
                continue

            if text == "/pause":
                await manager.pause_session(session.id)
                console.print("[dim]Session paused.[/dim]")
                return
            if text in ("/end", "/complete"):
                close = manager.complete_session if text == "/complete" else manager.end_session
                try:
                    summary = await close(session.id)
                except NoMessagesError:
                    await manager.pause_session(session.id)
                    console.print("[dim]Nothing to summarise yet. Session paused.[/dim]")
                    return
                console.print(f"[green]✓[/green] Session closed, summary {summary.id}")
                for action in summary.what_comes_next.next_actions:
                    console.print(f"  • {action}")
                return

            try:
                result = await manager.send_message(text, session.id, await project_data())
            except ModelClientError as e:
                console.print(f"[red]Model error: {e}[/red]")
                continue
            _print_result(result)

    try:
        asyncio.run(run())
    except CadenceError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


# ============================================================================
# Auto-summary
# ============================================================================


@app.command()
def autosummarise():
    """Summarise sessions left paused past the timeout."""
    from cadence.agent.composer import PromptComposer
    from cadence.agent.summary import SummaryGenerationService
    from cadence.autosummary.service import AutoSummarisationService
    from cadence.config.loader import load_config
    from cadence.providers.litellm_provider import LiteLLMClient
    from cadence.session.jsonl_store import JsonlSessionStore
    from cadence.session.lifecycle import SessionLifecycleManager

    config = load_config()
    store = JsonlSessionStore(config.storage_path)
    client = LiteLLMClient(api_key=config.model.api_key or None, api_base=config.model.api_base)
    service = AutoSummarisationService(
        lifecycle=SessionLifecycleManager(store),
        summaries=SummaryGenerationService(
            store,
            client,
            PromptComposer(_template_store(config)),
            request_config=config.summary_request_config(),
        ),
        timeout=config.auto_summary.timeout,
        max_retries=config.auto_summary.max_retries,
        backoff_base_s=config.auto_summary.backoff_base_s,
    )

    report = asyncio.run(service.run_pass())
    console.print(
        f"{__logo__} {len(report.summarised)} summarised, "
        f"{len(report.pending)} pending, {len(report.skipped)} skipped"
    )


if __name__ == "__main__":
    app()
