#!/usr/bin/env python3
"""
clamm command line interface.

Commands:
    demo            Deploy a pool in memory and run mint / swap / burn against it
    tick-to-price   Show the sqrt price and price of a tick
    price-to-tick   Show the tick at or below a price
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from clamm.core.collaborators import LiquidityShareLedger, TokenVault
from clamm.core.config import PoolSettings
from clamm.core.constants import MAX_SQRT_RATIO, MAX_UINT256, MIN_SQRT_RATIO
from clamm.core.exceptions import PoolError
from clamm.core.logging_config import setup_logging_from_settings
from clamm.core.pool import PoolEngine
from clamm.core.tick_math import (
    price_to_sqrt_price,
    price_to_tick,
    sqrt_price_to_price,
    tick_to_price,
    tick_to_sqrt_price,
)

# Configure module logger
logger = logging.getLogger(__name__)

# Rich console for terminal output
console = Console()

TOKEN0 = "TK0"
TOKEN1 = "TK1"
WAD = 10**18


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _emit(ctx: click.Context, payload: Dict[str, Any], title: str) -> None:
    """Emit a payload honoring the --json-output flag."""
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(payload, indent=2))
        return

    table = Table(show_header=False, box=box.ROUNDED, title=title)
    for key, value in payload.items():
        table.add_row(f"[bold cyan]{key.replace('_', ' ').title()}[/]", str(value))
    console.print(Panel(table, border_style="cyan"))


def _pool_view(pool: PoolEngine) -> Dict[str, Any]:
    snapshot = pool.get_pool_state()
    state = pool.state
    return {
        "liquidity": snapshot.liquidity,
        "sqrt_price_x96": snapshot.sqrt_price_x96,
        "tick": snapshot.tick,
        "price": sqrt_price_to_price(snapshot.sqrt_price_x96),
        "protocol_fees_0": state.protocol_fees_0,
        "protocol_fees_1": state.protocol_fees_1,
    }


# ============================================================================
# CLI Group
# ============================================================================

@click.group()
@click.option('--json-output', is_flag=True, help='Output raw JSON')
@click.option(
    '--log-level',
    envvar='CLAMM_LOG_LEVEL',
    default='WARNING',
    show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
    help='Log level for JSON logs written to stderr',
)
@click.pass_context
def cli(ctx: click.Context, json_output: bool, log_level: str):
    """
    clamm - concentrated liquidity AMM engine

    Runs an in-memory pool with Q64.96 sqrt prices, tick ranged positions
    and a 0.30% swap fee.
    """
    ctx.ensure_object(dict)
    try:
        settings = PoolSettings.from_env()
    except PoolError as exc:
        _cli_fail(exc)

    setup_logging_from_settings(settings, level=log_level, stream=sys.stderr)
    ctx.obj['json_output'] = json_output
    ctx.obj['settings'] = settings


@cli.command("tick-to-price")
@click.argument("tick", type=int)
@click.pass_context
def tick_to_price_cmd(ctx: click.Context, tick: int):
    """Show the sqrt price and price of TICK."""
    try:
        sqrt_price_x96 = tick_to_sqrt_price(tick)
        payload = {
            "tick": tick,
            "sqrt_price_x96": sqrt_price_x96,
            "price": tick_to_price(tick),
        }
    except PoolError as exc:
        _cli_fail(exc)
    _emit(ctx, payload, "Tick")


@cli.command("price-to-tick")
@click.argument("price", type=str)
@click.pass_context
def price_to_tick_cmd(ctx: click.Context, price: str):
    """Show the tick at or below PRICE (token1 per token0)."""
    try:
        value = float(price)
    except ValueError:
        raise click.BadParameter(f"{price!r} is not a number", param_hint="PRICE")

    try:
        tick = price_to_tick(value)
        payload = {
            "price": value,
            "tick": tick,
            "sqrt_price_x96": price_to_sqrt_price(value),
            "tick_price": tick_to_price(tick),
        }
    except PoolError as exc:
        _cli_fail(exc)
    _emit(ctx, payload, "Price")


@cli.command("demo")
@click.option('--tick', 'initial_tick', type=int, default=69200, show_default=True,
              help='Initial pool tick')
@click.option('--sqrt-price', 'sqrt_price_x96', type=int, default=None,
              help='Initial Q64.96 sqrt price (overrides --tick)')
@click.option('--tick-lower', type=int, default=69080, show_default=True)
@click.option('--tick-upper', type=int, default=69320, show_default=True)
@click.option('--liquidity', type=click.IntRange(min=1), default=10**21, show_default=True,
              help='Liquidity minted by the provider')
@click.option('--swap-amount', type=int, default=WAD, show_default=True,
              help='Exact input (positive) or exact output (negative) of the swap')
@click.option('--one-for-zero', is_flag=True, help='Swap token1 for token0 instead')
@click.pass_context
def demo(
    ctx: click.Context,
    initial_tick: int,
    sqrt_price_x96: Optional[int],
    tick_lower: int,
    tick_upper: int,
    liquidity: int,
    swap_amount: int,
    one_for_zero: bool,
):
    """Deploy a pool, provide liquidity, swap through it and withdraw half."""
    json_output = ctx.obj.get("json_output")
    try:
        if sqrt_price_x96 is None:
            sqrt_price_x96 = tick_to_sqrt_price(initial_tick)

        vault = TokenVault()
        provider, trader = "provider", "trader"
        for account in (provider, trader):
            vault.fund(account, TOKEN0, 1_000 * WAD)
            vault.fund(account, TOKEN1, 2_000_000 * WAD)
            vault.approve(account, TOKEN0, MAX_UINT256)
            vault.approve(account, TOKEN1, MAX_UINT256)

        pool = PoolEngine(
            sqrt_price_x96,
            vault,
            shares=LiquidityShareLedger(),
            token0=TOKEN0,
            token1=TOKEN1,
            settings=ctx.obj.get("settings"),
        )
        steps = [{"step": "deploy", **_pool_view(pool)}]

        amount0, amount1 = pool.mint(provider, tick_lower, tick_upper, liquidity)
        steps.append({"step": "mint", "amount0": amount0, "amount1": amount1, **_pool_view(pool)})

        # Stop at half (or double) the starting sqrt price
        zero_for_one = not one_for_zero
        if zero_for_one:
            limit = max(sqrt_price_x96 // 2, MIN_SQRT_RATIO + 1)
        else:
            limit = min(sqrt_price_x96 * 2, MAX_SQRT_RATIO - 1)
        result = pool.swap(trader, zero_for_one, swap_amount, limit)
        steps.append({
            "step": "swap",
            "amount0": result.amount0,
            "amount1": result.amount1,
            "fee_amount": result.fee_amount,
            "crossed_ticks": list(result.crossed_ticks),
            **_pool_view(pool),
        })

        burn_amount = pool.get_position(provider, tick_lower, tick_upper).liquidity // 2
        if burn_amount:
            amount0, amount1 = pool.burn(provider, tick_lower, tick_upper, burn_amount)
            steps.append({"step": "burn", "amount0": amount0, "amount1": amount1, **_pool_view(pool)})
    except PoolError as exc:
        _cli_fail(exc)

    balances = {
        account: {
            TOKEN0: vault.balance_of(account, TOKEN0),
            TOKEN1: vault.balance_of(account, TOKEN1),
            "shares": pool.balance_of(account),
        }
        for account in (provider, trader, vault.pool_account)
    }

    if json_output:
        click.echo(json.dumps({"steps": steps, "balances": balances}, indent=2))
        return

    table = Table(title="Pool state", box=box.ROUNDED)
    for column in ("Step", "Amount0", "Amount1", "Liquidity", "Tick", "Price"):
        table.add_column(column, style="cyan" if column == "Step" else "green")
    for step in steps:
        table.add_row(
            step["step"],
            str(step.get("amount0", "")),
            str(step.get("amount1", "")),
            str(step["liquidity"]),
            str(step["tick"]),
            f"{step['price']:.6f}",
        )
    console.print(table)

    balance_table = Table(title="Balances", box=box.SIMPLE)
    balance_table.add_column("Account", style="cyan")
    balance_table.add_column(TOKEN0, style="green")
    balance_table.add_column(TOKEN1, style="green")
    balance_table.add_column("Shares", style="green")
    for account, values in balances.items():
        balance_table.add_row(account, str(values[TOKEN0]), str(values[TOKEN1]), str(values["shares"]))
    console.print(balance_table)
    console.print(f"[bold]Audit records:[/] {len(pool.audit_log)}")


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)
    except (click.ClickException, PoolError, ValueError) as exc:
        _cli_fail(exc)


if __name__ == '__main__':
    main()
