"""Main CLI application for the ICT signal scanner.

This module provides the command-line interface: one-off scans, the
periodic scanner loop, configuration status and API health checks.
"""

import asyncio
import json
import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from .utils.config import Config, get_config, get_env_config, load_config
from .utils.logging import setup_logging, get_scanner_logger
from .utils.time_utils import get_utc_now, format_utc_time, format_duration
from .api.bybit_rest import BybitRestClient
from .presentation import build_signal_table, signal_to_dict
from .scanner.scanner import ScanResult, SignalScanner


console = Console()
logger = get_scanner_logger(__name__)


class ScannerApp:
    """Wires configuration, logging, candle source and scanner together."""

    def __init__(self):
        self.config: Optional[Config] = None
        self.env_config = None
        self.api_client: Optional[BybitRestClient] = None
        self.scanner: Optional[SignalScanner] = None

    def initialize(self, config_path: Optional[str] = None) -> None:
        """Initialize application components.

        Args:
            config_path: Configuration file (defaults to configs/config.yaml)
        """
        self.config = load_config(config_path) if config_path else get_config()
        self.env_config = get_env_config()

        if self.env_config.log_level:
            self.config.logging.level = self.env_config.log_level.upper()
        elif self.env_config.debug_mode:
            self.config.logging.level = "DEBUG"

        setup_logging(self.config.logging)

        logger.info(
            "Initializing ICT signal scanner",
            data={
                "environment": self.env_config.environment,
                "symbols": self.config.scanner.symbols,
                "timeframes": self.config.scanner.timeframes
            }
        )

        self.api_client = BybitRestClient(self.config.exchange, self.env_config)
        self.scanner = SignalScanner(self.config, self.api_client)

    async def cleanup(self) -> None:
        """Cleanup application resources."""
        if self.api_client:
            await self.api_client.close()

        logger.info("Application cleanup completed")


def display_signals(app: ScannerApp, result: Optional[ScanResult] = None) -> None:
    """Print the signal table, preceded by pass statistics when given."""
    if result is not None:
        console.print(
            f"\n⏱️  Pass finished at {format_utc_time(result.timestamp)} UTC in "
            f"{result.scan_duration_seconds:.2f}s | pairs: {result.total_pairs} | "
            f"ok: {result.succeeded} | failed: {result.failed} | setups: {result.setups}"
        )

    console.print(build_signal_table(
        app.scanner.cache,
        app.config.scanner.symbols,
        app.config.scanner.timeframes
    ))


@click.group()
@click.version_option(version='0.1.0')
def cli():
    """📊 ICT-style multi-timeframe signal scanner (Bybit market data).

    Signals only: computes entry/TP/SL, places no trades.
    """
    pass


@cli.command()
@click.option('--config', '-c', help='Configuration file path')
@click.option('--format', 'output_format', default='table',
              type=click.Choice(['table', 'json']), help='Output format')
def scan(config: Optional[str], output_format: str):
    """🔍 Run a single scan pass and show the signals."""
    app = ScannerApp()

    async def _scan():
        try:
            app.initialize(config)

            if output_format == 'table':
                console.print("\n🔍 [bold blue]Starting scan pass...[/bold blue]")

            result = await app.scanner.run_pass()

            if output_format == 'json':
                snapshot = app.scanner.cache.snapshot()
                result_dict = {
                    'timestamp': result.timestamp.isoformat(),
                    'scan_duration_seconds': result.scan_duration_seconds,
                    'total_pairs': result.total_pairs,
                    'succeeded': result.succeeded,
                    'failed': result.failed,
                    'signals': [
                        signal_to_dict(signal)
                        for by_timeframe in snapshot.values()
                        for signal in by_timeframe.values()
                    ]
                }
                click.echo(json.dumps(result_dict, indent=2, ensure_ascii=False))
            else:
                display_signals(app, result)

        except Exception as e:
            console.print(f"\n❌ [bold red]Scan failed: {e}[/bold red]")
            logger.error(f"Scan failed: {e}")
            sys.exit(1)
        finally:
            await app.cleanup()

    asyncio.run(_scan())


@cli.command()
@click.option('--config', '-c', help='Configuration file path')
@click.option('--passes', '-n', type=int, default=None, help='Stop after this many passes')
@click.option('--interval', '-i', type=float, default=None, help='Seconds between passes')
def run(config: Optional[str], passes: Optional[int], interval: Optional[float]):
    """🏃 Run the scanner periodically and print signals after every pass."""
    app = ScannerApp()

    async def _run():
        try:
            app.initialize(config)

            effective_interval = interval if interval is not None else app.config.scanner.scan_interval_seconds
            console.print("\n🚀 [bold green]Scanner starting...[/bold green]")
            console.print(f"🪙 Pairs: {', '.join(app.config.scanner.symbols) or '-'}")
            console.print(f"🕒 Timeframes: {', '.join(app.config.scanner.timeframes) or '-'}")
            console.print(f"🔁 Interval: {format_duration(int(effective_interval))}")

            await app.scanner.run_forever(
                max_passes=passes,
                interval_seconds=interval,
                on_pass=lambda result: display_signals(app, result)
            )

        except Exception as e:
            console.print(f"\n❌ [bold red]Scanner error: {e}[/bold red]")
            logger.error(f"Scanner error: {e}")
            sys.exit(1)
        finally:
            await app.cleanup()

    asyncio.run(_run())


@cli.command()
@click.option('--config', '-c', help='Configuration file path')
def status(config: Optional[str]):
    """📋 Show configuration status."""
    try:
        cfg = load_config(config) if config else get_config()
        env_config = get_env_config()

        console.print("\n📋 [bold blue]Scanner Status[/bold blue]")

        table = Table(title="🔧 Configuration Status", show_header=True, header_style="bold magenta")
        table.add_column("Component", style="cyan", width=20)
        table.add_column("Status", style="green", width=15)
        table.add_column("Details", style="white", width=50)

        table.add_row("Environment", "✅ Loaded", f"Env: {env_config.environment}")

        exchange_info = f"{cfg.exchange.base_url} ({cfg.exchange.category}), timeout {cfg.exchange.timeout}s"
        table.add_row("Exchange", "✅ Configured", exchange_info)

        symbols_status = "✅ Configured" if cfg.scanner.symbols else "⚠️  No symbols"
        table.add_row("Symbols", symbols_status, ', '.join(cfg.scanner.symbols) or "-")
        table.add_row("Timeframes", "✅ Configured", ', '.join(cfg.scanner.timeframes) or "-")

        scanner_info = (
            f"Every {cfg.scanner.scan_interval_seconds}s, "
            f"{cfg.scanner.max_concurrent_scans} concurrent fetches"
        )
        table.add_row("Scanner", "✅ Configured", scanner_info)

        strategy = cfg.strategy
        strategy_info = (
            f"EMA{strategy.ema_fast}/{strategy.ema_slow}, RSI{strategy.rsi_period}, "
            f"OTE {strategy.ote_fib_shallow}-{strategy.ote_fib_deep}, "
            f"TP {strategy.tp_range_mult}R / SL {strategy.sl_range_mult}R"
        )
        table.add_row("Strategy", "✅ Configured", strategy_info)

        console.print(table)
        console.print(f"\n⏰ Current Time (UTC): {format_utc_time(get_utc_now())}")

    except Exception as e:
        console.print(f"\n❌ [bold red]Failed to get status: {e}[/bold red]")
        sys.exit(1)


@cli.command()
@click.option('--config', '-c', help='Configuration file path')
def health(config: Optional[str]):
    """🏥 Check API connectivity."""
    app = ScannerApp()

    async def _health():
        try:
            app.initialize(config)

            console.print("\n🏥 [bold blue]Health Check[/bold blue]")
            console.print("🔌 Testing API connectivity...")

            if await app.api_client.health_check():
                console.print("✅ [green]API connection healthy[/green]")
            else:
                console.print("❌ [red]API connection failed[/red]")
                sys.exit(1)

        except Exception as e:
            console.print(f"\n❌ [bold red]Health check failed: {e}[/bold red]")
            sys.exit(1)
        finally:
            await app.cleanup()

    asyncio.run(_health())


def main():
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n\n⏹️  [yellow]Scanner stopped by user[/yellow]")
        sys.exit(0)
    except Exception as e:
        console.print(f"\n💥 [bold red]Unexpected error: {e}[/bold red]")
        sys.exit(1)


if __name__ == '__main__':
    main()
