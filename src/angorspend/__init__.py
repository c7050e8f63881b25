"""
angorspend - Consolidate Angor founder outputs

Discovers founder outputs through the Angor indexer, keeps them in a local cache and
spends a selection of them to a single payout address.
"""

__version__ = "0.1.0"
