"""
clamm - Concentrated Liquidity AMM Engine

An in-memory automated market maker where liquidity providers commit capital
to bounded price ranges and traders swap against it with a fixed 0.30% fee.

Main Components:
- core.tick_math: tick <-> Q64.96 sqrt price conversion
- core.liquidity_math: liquidity <-> token amount conversion
- core.pool: PoolEngine with mint, burn, swap and quote
- cli: command-line demo and price helpers
"""

__version__ = "0.1.0"
__author__ = "clamm Development Team"

__all__ = []
