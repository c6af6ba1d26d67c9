"""Quarry CLI for managing connection pool configurations.

This module provides a command-line interface for:
- Writing a starter configuration
- Validating configuration files
- Opening the configured pools to report their stats or health
- Listing the available pooling strategies
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..config import DatabaseConfig, load_config, save_config
from ..exceptions import QuarryError
from ..pooling.factory import PoolFactory
from ..registry import PoolRegistry

console = Console()

SAMPLE_CONFIG = {
    "pools": {
        "primary": {
            "strategy": "queue",
            "max_size": 5,
            "max_idle": 3,
            "idle_timeout_seconds": 30,
            "backend_uri": "${DATABASE_URL:sqlite:///database.sqlite}",
        },
        "read": {
            "strategy": "queue",
            "max_size": 10,
            "max_idle": 5,
            "idle_timeout_seconds": 60,
            "backend_uri": "${READ_DATABASE_URL:sqlite:///database.sqlite}",
        },
    },
    "default": "primary",
}


def _load(config_file: str) -> DatabaseConfig:
    try:
        return load_config(config_file)
    except QuarryError as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)


def _run_with_pools(config: DatabaseConfig, use_async: bool, action):
    """Initialize a registry for ``config``, await ``action`` on it, close it.

    Without ``use_async`` the pools are built before the event loop starts,
    so channel strategies fall back to array pools as they would in
    synchronous code.
    """

    async def run(registry):
        if registry is None:
            registry = PoolRegistry()
            registry.initialize(config)
        try:
            return await action(registry)
        finally:
            registry.close_all()

    if use_async:
        return asyncio.run(run(None))
    registry = PoolRegistry()
    registry.initialize(config)
    return asyncio.run(run(registry))


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging level",
)
def cli(log_level: str):
    """Quarry - Database connection pool management tool"""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--output", "-o", default="quarry.yaml", help="Output file path")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init(output: str, force: bool):
    """Write a starter pool configuration"""
    output_path = Path(output)
    if output_path.exists() and not force:
        console.print(f"[yellow]{output} already exists, use --force to overwrite[/yellow]")
        sys.exit(1)

    try:
        save_config(SAMPLE_CONFIG, output_path)
    except QuarryError as e:
        console.print(f"[red]Error writing configuration: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✓[/green] Created configuration in {output}")
    console.print(f"  Pools: {', '.join(SAMPLE_CONFIG['pools'])}")
    console.print(f"  Default: {SAMPLE_CONFIG['default']}")


@cli.group()
def config():
    """Configuration management commands"""
    pass


@config.command()
@click.argument("config_file", type=click.Path(exists=True))
def validate(config_file: str):
    """Validate a pool configuration file"""
    db_config = _load(config_file)

    console.print("[green]✓[/green] Configuration is valid!")
    table = Table(title="Pools")
    table.add_column("Name", style="cyan")
    table.add_column("Strategy", style="green")
    table.add_column("Max", justify="right")
    table.add_column("Idle", justify="right")
    table.add_column("Timeout", justify="right")
    table.add_column("Backend")
    for name, pool in db_config.pools.items():
        label = f"{name} (default)" if name == db_config.default_name else name
        table.add_row(
            label,
            pool.strategy,
            str(pool.max_size),
            str(pool.max_idle),
            f"{pool.idle_timeout_seconds:g}s",
            str(pool.connection_string),
        )
    console.print(table)


@cli.group()
def pools():
    """Pool inspection commands"""
    pass


@pools.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--format", "-f", "output_format", type=click.Choice(["table", "json"]), default="table")
@click.option("--async", "use_async", is_flag=True, help="Open the pools inside an event loop")
def stats(config_file: str, output_format: str, use_async: bool):
    """Open every configured pool and show its stats"""
    db_config = _load(config_file)

    async def collect(registry: PoolRegistry):
        return registry.stats()

    try:
        all_stats = _run_with_pools(db_config, use_async, collect)
    except QuarryError as e:
        console.print(f"[red]Error opening pools: {e}[/red]")
        sys.exit(1)

    if output_format == "json":
        click.echo(json.dumps(all_stats, indent=2, default=str))
        return

    table = Table(title="Pool Stats")
    table.add_column("Pool", style="cyan")
    table.add_column("Strategy", style="green")
    table.add_column("Current", justify="right")
    table.add_column("Idle", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Concurrent")
    for name, pool_stats in all_stats.items():
        strategy = pool_stats["strategy"]
        if pool_stats.get("fallback_for"):
            strategy += f" (for {pool_stats['fallback_for']})"
        table.add_row(
            name,
            strategy,
            str(pool_stats["current_connections"]),
            str(pool_stats["idle_connections"]),
            str(pool_stats["max_size"]),
            "yes" if pool_stats["is_concurrent"] else "no",
        )
    console.print(table)


@pools.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--name", "-n", help="Check only this pool")
@click.option("--async", "use_async", is_flag=True, help="Open the pools inside an event loop")
def check(config_file: str, name: str, use_async: bool):
    """Acquire, validate and release one connection per pool"""
    db_config = _load(config_file)
    if name is not None and name not in db_config.pools:
        console.print(f"[red]Pool '{name}' is not configured[/red]")
        sys.exit(1)

    async def probe(registry: PoolRegistry):
        results = {}
        names = [name] if name else registry.list_keys()
        for pool_name in names:
            pool = registry.get(pool_name)
            try:
                if pool.is_concurrent():
                    connection = await pool.acquire()
                else:
                    connection = pool.acquire()
                try:
                    results[pool_name] = (pool.factory.validate(connection), "")
                finally:
                    pool.release(connection)
            except QuarryError as e:
                results[pool_name] = (False, str(e))
        return results

    try:
        results = _run_with_pools(db_config, use_async, probe)
    except QuarryError as e:
        console.print(f"[red]Error opening pools: {e}[/red]")
        sys.exit(1)

    failed = 0
    for pool_name, (ok, error) in results.items():
        if ok:
            console.print(f"[green]✓[/green] {pool_name}")
        else:
            failed += 1
            detail = f": {error}" if error else ": validation failed"
            console.print(f"[red]✗[/red] {pool_name}{detail}")

    if failed:
        sys.exit(1)


@cli.command()
def strategies():
    """List the available pooling strategies"""
    factory = PoolFactory()
    table = Table(title="Pool Strategies")
    table.add_column("Strategy", style="cyan")
    table.add_column("Description")
    table.add_column("Concurrent")
    for strategy in sorted(factory.registry.list_keys()):
        info = factory.strategy_info(strategy)
        if "alias_for" in info:
            table.add_row(strategy, f"Alias for {info['alias_for']}", "")
            continue
        table.add_row(
            strategy,
            info.get("description", ""),
            "yes" if info.get("concurrent") else "no",
        )
    console.print(table)


def main():
    """Main entry point for CLI"""
    cli()


if __name__ == "__main__":
    main()
