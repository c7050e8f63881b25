"""
Angor founder-spend constants.

Fee policy is a flat heuristic rather than a fee-rate estimate:
- FEE_PER_INPUT is charged once per consolidated input
- FEE_BASE covers the transaction overhead and the single payout output
"""

from __future__ import annotations

# Flat fee heuristic: fee = inputs * FEE_PER_INPUT + FEE_BASE (satoshis)
FEE_PER_INPUT = 1000
FEE_BASE = 500

SATS_PER_BTC = 100_000_000

# Angor root on non-mainnet networks is m/5' (disjoint key space from mainnet's m)
TESTNET_ROOT_INDEX = 5

HARDENED_OFFSET = 0x80000000
UPI_MASK = 0x7FFFFFFF

# Project listing page size used by the indexer
PROJECTS_PAGE_SIZE = 21

# Founder outputs are always the first output of an investment transaction
FOUNDER_OUTPUT_INDEX = 0

MAINNET_INDEXER_URL = "https://angor.shreddertest.xyz/api/v1"
TESTNET_INDEXER_URL = "https://test.explorer.angor.io/api/v1"

DEFAULT_CACHE_FILE = "angor_spend_cache.json"

DEFAULT_REQUEST_TIMEOUT = 30.0

# Transaction template
TX_VERSION = 2
TX_LOCKTIME = 0
TX_SEQUENCE = 0xFFFFFFFF
SIGHASH_ALL = 1
