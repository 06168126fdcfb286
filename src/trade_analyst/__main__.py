"""
===================================
Trade Analyst - command line entry point
===================================

Usage:
    trade-analyst analyze AAPL                    # full agentic stock analysis
    trade-analyst analyze EUR/USD --type forex    # forex setup
    trade-analyst quick NVDA --type earnings      # standalone lookup + summary
    trade-analyst jobs                            # recent jobs
    trade-analyst status <job-id>
    trade-analyst cancel <job-id>
    trade-analyst chat "What moves gold on NFP days?"
    trade-analyst diagnostics                     # check every configured service
    trade-analyst backtest check                  # score pending predictions
    trade-analyst backtest stats --days 30
    trade-analyst kb add notes.md --type forex    # ingest a document into the knowledge base
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from trade_analyst.config import get_config_safe
from trade_analyst.exceptions import LLMError, TradeAnalystError
from trade_analyst.infrastructure.http_client import aiohttp_session_manager
from trade_analyst.models import AnalysisJob, AnalysisType, JobStatus, TradeRecommendation
from trade_analyst.utils.logging_config import get_console, setup_logging

logger = logging.getLogger(__name__)

FULL_TYPES = [AnalysisType.STOCK.value, AnalysisType.FOREX.value]
STANDALONE_TYPES = [t.value for t in AnalysisType if t.is_standalone]

_CALL_STYLES = {
    "strong_buy": "bullish",
    "buy": "bullish",
    "sell": "bearish",
    "strong_sell": "bearish",
}

def _fmt_price(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:,.5f}".rstrip("0").rstrip(".") if value < 10 else f"{value:,.2f}"


def _print_recommendation(rec: TradeRecommendation) -> None:
    console = get_console()
    style = _CALL_STYLES.get(rec.recommendation.value, "neutral")
    console.print()
    console.rule(f"[bold]{escape(rec.symbol)}[/bold] ({rec.analysis_type})", style="cyan")
    console.print(
        f"  Call: [{style}]{rec.recommendation.value.upper()}[/{style}]"
        f"   Confidence: [bold]{rec.confidence}%[/bold]   Timeframe: {escape(rec.timeframe)}"
    )

    levels = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    for column in ("Current", "Entry", "Stop", "Target"):
        levels.add_column(column, justify="right")
    levels.add_row(
        _fmt_price(rec.current_price),
        _fmt_price(rec.entry_price),
        _fmt_price(rec.stop_loss),
        _fmt_price(rec.price_target),
    )
    console.print(levels)

    if rec.reasoning:
        console.print()
        console.print(escape(rec.reasoning))

    if rec.key_factors:
        console.print()
        console.print("[bold]Key factors[/bold]")
        for kf in rec.key_factors:
            console.print(f"  [{kf.sentiment.value}]{kf.sentiment.value:>8}[/] {kf.weight:>3}  {escape(kf.factor)}")

    if rec.risks:
        console.print()
        console.print("[bold]Risks[/bold]")
        for risk in rec.risks:
            console.print(f"  - {escape(risk)}")

    if rec.options_strategy:
        strategy = rec.options_strategy
        console.print()
        console.print(
            f"[bold]Options:[/bold] {escape(strategy.strategy_type)}  {escape(strategy.strategy_description)}"
        )
        for leg in strategy.legs:
            console.print(
                f"  {leg.action} {leg.quantity}x {leg.option_type} {_fmt_price(leg.strike)} exp {leg.expiration}"
            )

    if rec.forex_setup and rec.forex_setup.trade:
        trade = rec.forex_setup.trade
        console.print()
        console.print(
            f"[bold]Forex:[/bold] {trade.action} {trade.order_type} @ {_fmt_price(trade.entry_price)}"
            f"  SL {_fmt_price(trade.stop_loss)} ({trade.stop_loss_pips or '-'} pips)"
            f"  TP1 {_fmt_price(trade.take_profit_1)}  TP2 {_fmt_price(trade.take_profit_2)}"
        )

    if rec.data_sources:
        console.print()
        console.print(f"[dim]Sources: {escape(', '.join(rec.data_sources))}[/dim]")
    console.print()


def _print_job(job: AnalysisJob) -> None:
    console = get_console()
    style = f"status.{job.status.value}"
    console.print(f"Job [bold]{job.id}[/bold]")
    console.print(f"  {job.symbol} ({job.analysis_type.value})  [{style}]{job.status.value}[/{style}]  {job.progress}%")
    if job.current_step:
        console.print(f"  Step: {escape(job.current_step)}")
    if job.tools_called:
        names = ", ".join(tc.name for tc in job.tools_called)
        console.print(f"  Tools ({len(job.tools_called)}): {escape(names)}")
    if job.error:
        console.print(f"  [red]Error: {escape(job.error)}[/red]")
    if job.final_result:
        _print_recommendation(job.final_result)


def _run(coro) -> int:
    """Run a coroutine under the shared HTTP session and map interrupts to exit codes."""

    async def _with_session():
        async with aiohttp_session_manager():
            return await coro

    try:
        return asyncio.run(_with_session())
    except KeyboardInterrupt:
        logger.info("Interrupted by user, exiting")
        return 130
    except TradeAnalystError as e:
        get_console().print(f"[red]{escape(e.message)}[/red]")
        return 1


@click.group()
@click.option("--debug", is_flag=True, help="Enable verbose logging and a debug log file")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Trade Analyst - agentic AI analysis for stocks, options and forex."""
    config, errors = get_config_safe()
    if config is None:
        console = get_console()
        console.print("\n[bold yellow]Configuration could not be loaded[/bold yellow]")
        for error in errors:
            console.print(f"  - {escape(error)}")
        ctx.exit(1)

    setup_logging(config, debug=debug)
    for warning in config.validate_config():
        logger.warning(warning)


@cli.command()
@click.argument("symbol")
@click.option("--type", "kind", type=click.Choice(FULL_TYPES), default="stock", show_default=True)
@click.option("--context", "additional_context", default=None, help="Extra instructions for the analyst")
@click.option("--timeframe", "trading_timeframe", default=None, help="e.g. scalp, day, swing, position")
def analyze(symbol: str, kind: str, additional_context: str | None, trading_timeframe: str | None) -> None:
    """Run a full analysis job for SYMBOL and print the recommendation."""
    from trade_analyst.dependencies import get_job_store, get_prediction_store
    from trade_analyst.jobs import submit_analysis

    async def _analyze() -> int:
        with get_console().status(f"Analyzing {symbol.upper()}..."):
            job = await submit_analysis(
                get_job_store(),
                symbol,
                AnalysisType.from_string(kind),
                additional_context,
                trading_timeframe,
                predictions=get_prediction_store(),
            )
        _print_job(job)
        return 0 if job.status == JobStatus.COMPLETED else 1

    sys.exit(_run(_analyze()))


@cli.command()
@click.argument("symbol")
@click.option("--type", "kind", type=click.Choice(STANDALONE_TYPES), default="technical", show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Print the raw result as JSON")
def quick(symbol: str, kind: str, as_json: bool) -> None:
    """Standalone lookup (no trading call) with a short AI summary."""
    from trade_analyst.ai.standalone import run_standalone_analysis

    async def _quick() -> int:
        result = await run_standalone_analysis(symbol, AnalysisType.from_string(kind))
        console = get_console()
        if as_json:
            console.print_json(json.dumps(result.to_dict(), default=str))
        else:
            console.rule(f"[bold]{escape(result.symbol)}[/bold] {result.type.value}", style="cyan")
            console.print(escape(result.summary))
        return 1 if result.error else 0

    sys.exit(_run(_quick()))


@cli.command()
@click.argument("job_id")
def status(job_id: str) -> None:
    """Show progress and result of a job."""
    from trade_analyst.dependencies import get_job_store

    try:
        _print_job(get_job_store().get_job(job_id))
    except TradeAnalystError as e:
        get_console().print(f"[red]{escape(e.message)}[/red]")
        sys.exit(1)


@cli.command()
@click.argument("job_id")
def cancel(job_id: str) -> None:
    """Mark a pending or running job cancelled."""
    from trade_analyst.dependencies import get_job_store

    try:
        job = get_job_store().cancel_job(job_id)
    except TradeAnalystError as e:
        get_console().print(f"[red]{escape(e.message)}[/red]")
        sys.exit(1)
    get_console().print(f"Job {job.id} cancelled")


@cli.command()
@click.option("--limit", default=20, show_default=True)
def jobs(limit: int) -> None:
    """List recent jobs."""
    from trade_analyst.dependencies import get_job_store

    table = Table(title="Analysis jobs")
    for column in ("ID", "Symbol", "Type", "Status", "Progress", "Call", "Created"):
        table.add_column(column)
    for job in get_job_store().list_jobs(limit=limit):
        style = f"status.{job.status.value}"
        call = f"{job.final_result.recommendation.value} ({job.final_result.confidence}%)" if job.final_result else "-"
        table.add_row(
            job.id,
            job.symbol,
            job.analysis_type.value,
            f"[{style}]{job.status.value}[/{style}]",
            f"{job.progress}%",
            call,
            job.created_at.strftime("%Y-%m-%d %H:%M") if job.created_at else "-",
        )
    get_console().print(table)


@cli.command()
@click.argument("prompt")
def chat(prompt: str) -> None:
    """Ask the model a free-form question; the answer is streamed."""
    from trade_analyst.dependencies import get_llm

    async def _chat() -> int:
        console = get_console()
        messages = [{"role": "user", "content": prompt}]
        try:
            async for delta in get_llm().stream_chat(messages):
                console.print(delta, end="", markup=False, highlight=False)
        except LLMError as e:
            console.print(f"\n[red]{escape(e.message)}[/red]")
            return 1
        console.print()
        return 0

    sys.exit(_run(_chat()))


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
def diagnostics(as_json: bool) -> None:
    """Check connectivity and credentials of every external service."""
    from trade_analyst.dependencies import get_database, get_llm, get_providers
    from trade_analyst.diagnostics import check_providers

    async def _diagnostics() -> int:
        console = get_console()
        with console.status("Checking services..."):
            report = await check_providers(get_providers(), get_llm(), get_database())
        if as_json:
            console.print_json(json.dumps(report.to_dict()))
        else:
            table = Table(title=f"Service diagnostics: {report.overall}")
            for column in ("Service", "Status", "Message", "Details"):
                table.add_column(column)
            for result in report.results:
                style = f"check.{result.status.value}"
                table.add_row(
                    result.name,
                    f"[{style}]{result.status.value}[/{style}]",
                    escape(result.message),
                    escape(result.details or ""),
                )
            console.print(table)
        return 0 if report.overall != "degraded" else 1

    sys.exit(_run(_diagnostics()))


@cli.group()
def backtest() -> None:
    """Track how past trading calls played out."""


@backtest.command("check")
def backtest_check() -> None:
    """Score pending predictions against current prices."""
    from trade_analyst.backtest import check_pending_predictions
    from trade_analyst.dependencies import get_prediction_store, get_providers

    async def _check() -> int:
        resolved = await check_pending_predictions(get_prediction_store(), get_providers())
        get_console().print(f"Resolved {resolved} prediction(s)")
        return 0

    sys.exit(_run(_check()))


@backtest.command("stats")
@click.option("--days", type=int, default=None, help="Only predictions made in the last N days")
@click.option("--type", "kind", type=click.Choice(FULL_TYPES), default=None)
@click.option("--symbol", default=None)
@click.option("--json", "as_json", is_flag=True, help="Print the statistics as JSON")
def backtest_stats(days: int | None, kind: str | None, symbol: str | None, as_json: bool) -> None:
    """Win rate and P&L statistics of stored predictions."""
    from trade_analyst.backtest import get_backtest_stats
    from trade_analyst.dependencies import get_prediction_store

    stats = get_backtest_stats(get_prediction_store(), days=days, analysis_type=kind, symbol=symbol)
    console = get_console()
    if as_json:
        console.print_json(json.dumps(stats.to_dict()))
        return

    table = Table(title="Backtest results", show_header=False)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Trades", f"{stats.total_trades} ({stats.pending_trades} pending)")
    table.add_row("Won / lost", f"{stats.winning_trades} / {stats.losing_trades}")
    table.add_row("Win rate", f"{stats.win_rate:.1f}%")
    table.add_row("Avg win / loss", f"{stats.avg_win_percent:+.2f}% / -{stats.avg_loss_percent:.2f}%")
    table.add_row("Profit factor", f"{stats.profit_factor:.2f}")
    table.add_row("Bullish wins", f"{stats.bullish_wins}/{stats.bullish_trades}")
    table.add_row("Bearish wins", f"{stats.bearish_wins}/{stats.bearish_trades}")
    table.add_row("High confidence wins", f"{stats.high_confidence_wins}/{stats.high_confidence_trades}")
    table.add_row("Last 10 win rate", f"{stats.last_10_trades_win_rate:.1f}%")
    table.add_row("Best / worst trade", f"{stats.best_trade_percent:+.2f}% / {stats.worst_trade_percent:+.2f}%")
    table.add_row("Best / worst symbol", f"{stats.best_symbol} / {stats.worst_symbol}")
    console.print(table)


@cli.group()
def kb() -> None:
    """Manage the trading knowledge base."""


@kb.command("add")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--type", "kb_type", type=click.Choice(["stock", "forex"]), default="stock", show_default=True)
@click.option("--title", default=None, help="Defaults to the file name")
@click.option("--source", default=None, help="Where the document came from")
@click.option("--chunk-chars", type=click.IntRange(min=200), default=2000, show_default=True)
def kb_add(path: Path, kb_type: str, title: str | None, source: str | None, chunk_chars: int) -> None:
    """Split a text or markdown file into chunks and add them to the knowledge base."""
    from trade_analyst.dependencies import get_providers
    from trade_analyst.providers.knowledge import split_text

    chunks = split_text(path.read_text(encoding="utf-8"), max_chars=chunk_chars)
    if not chunks:
        get_console().print(f"[yellow]{escape(path.name)} has no text to add[/yellow]")
        sys.exit(1)

    knowledge = get_providers().knowledge
    metadata = {"title": title or path.stem, "source": source or path.name}

    async def _add() -> int:
        ids = await knowledge.add_documents(chunks, metadata, kb_type=kb_type)
        get_console().print(f"Added {len(ids)} chunk(s) from {escape(path.name)} to the {kb_type} knowledge base")
        return 0

    sys.exit(_run(_add()))


def main() -> int:
    """Program entry point."""
    return cli()


if __name__ == "__main__":
    sys.exit(main())
