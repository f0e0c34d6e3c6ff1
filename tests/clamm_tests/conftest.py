import logging
import sys
from pathlib import Path

import pytest

# Make pool_helpers importable from the unit/, invariants/ and cli/ directories
sys.path.insert(0, str(Path(__file__).parent))

from pool_helpers import TICK_LOWER, TICK_UPPER, fund_account, make_pool  # noqa: E402

from clamm.core.collaborators import TokenVault  # noqa: E402


@pytest.fixture(autouse=True)
def reset_clamm_logger():
    """Drop handlers installed by setup_logging between tests."""
    yield
    clamm_logger = logging.getLogger("clamm")
    for handler in list(clamm_logger.handlers):
        clamm_logger.removeHandler(handler)
        handler.close()
    clamm_logger.setLevel(logging.NOTSET)


@pytest.fixture
def vault():
    vault = TokenVault()
    for account in ("user1", "user2"):
        fund_account(vault, account)
    return vault


@pytest.fixture
def pool(vault):
    """Pool initialised at tick 69200 with no liquidity."""
    return make_pool(vault)


@pytest.fixture
def deep_pool(pool):
    """Pool with 10**21 liquidity from user1 on [69080, 69320)."""
    pool.mint("user1", TICK_LOWER, TICK_UPPER, 10**21)
    return pool
