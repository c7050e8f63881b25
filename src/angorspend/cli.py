"""
Angor Founder Spend CLI - Discover founder outputs, cache them and consolidate them.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Annotated, Any

import typer
from loguru import logger

from angorspend.backends.indexer import HttpIndexer
from angorspend.cache import UtxoCache
from angorspend.config import SpendSettings, get_settings
from angorspend.decisions import DecisionProvider
from angorspend.errors import AngorSpendError
from angorspend.models import NetworkType, UnspentOutput
from angorspend.reconcile import ReconciliationEngine
from angorspend.service import SpendOutcome, SpendSession, SpendStatus, format_amount
from angorspend.wallet.address import is_valid_address
from angorspend.wallet.derivation import derivation_path, derive_unique_project_identifier

app = typer.Typer(
    name="angor-spend",
    help=(
        "Angor Founder Spend Tool. Scans the Angor indexer (testnet by default, or mainnet) "
        "for unspent investment outputs controlled by founder keys derived from your "
        "mnemonic, caches them in a local JSON file and consolidates a selection of them "
        "into a single payout address."
    ),
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


class ConsoleDecisions(DecisionProvider):
    """Interactive prompts on the terminal."""

    def __init__(self, currency_symbol: str):
        self.currency_symbol = currency_symbol

    def should_rescan(self, cached_count: int, cached_total: int) -> bool:
        typer.echo(
            f"\nFound {cached_count} cached unspent output(s) totalling "
            f"{format_amount(cached_total, self.currency_symbol)}."
        )
        return typer.confirm("Perform a full rescan (clears the cache)?", default=False)

    def should_spend(self, output_count: int, total_value: int) -> bool:
        typer.echo(
            f"\n{output_count} spendable output(s) totalling "
            f"{format_amount(total_value, self.currency_symbol)}."
        )
        return typer.confirm("Do you want to spend these coins?", default=False)

    def select_count(self, available: int) -> int:
        while True:
            count = typer.prompt(
                f"How many outputs do you want to spend? (1-{available})",
                type=int,
                default=available,
            )
            if 1 <= count <= available:
                return count
            typer.echo(f"Please enter a number between 1 and {available}.")

    def confirm_broadcast(self, summary: dict[str, Any], tx_hex: str) -> bool:
        typer.echo("\n--- Decoded Transaction Details ---")
        typer.echo(json.dumps(summary, indent=2))
        typer.echo("--- End Decoded Transaction Details ---")
        typer.echo("\nTransaction Hex:")
        typer.echo(tx_hex)
        return typer.confirm("\nDo you want to broadcast this transaction now?", default=False)


def _load_settings(
    mainnet: bool | None,
    mnemonic: str | None,
    mnemonic_file: Path | None,
    passphrase: str | None,
    payout_address: str | None,
    cache_file: Path | None,
    indexer_url: str | None,
    log_level: str | None,
) -> SpendSettings:
    if mnemonic_file:
        if not mnemonic_file.exists():
            logger.error(f"Mnemonic file not found: {mnemonic_file}")
            raise typer.Exit(1)
        mnemonic = mnemonic_file.read_text().strip()

    network = None
    if mainnet is not None:
        network = NetworkType.MAINNET if mainnet else NetworkType.TESTNET

    return get_settings(
        network=network,
        mnemonic=mnemonic,
        passphrase=passphrase,
        payout_address=payout_address,
        cache_file=cache_file,
        indexer_url=indexer_url,
        log_level=log_level,
    )


def _print_network(settings: SpendSettings) -> None:
    typer.echo(f"Using network: {settings.network.value}")
    typer.echo(f"Currency: {settings.currency_symbol}")
    typer.echo(f"Indexer URL: {settings.effective_indexer_url}")
    typer.echo(f"Cache file: {settings.cache_file}")


def _print_outputs(outputs: list[UnspentOutput], symbol: str) -> None:
    for i, output in enumerate(outputs, 1):
        founder = output.founder_key[:16] + "..." if output.founder_key else "[none]"
        typer.echo(
            f"  {i:>3}. {output.output_id}  {format_amount(output.value, symbol)}  "
            f"{output.address or ''}  founder {founder}"
        )


def _report_outcome(outcome: SpendOutcome) -> None:
    if outcome.status == SpendStatus.BROADCAST:
        typer.echo("\nTransaction broadcast successfully!")
        typer.echo(f"Transaction ID: {outcome.txid}")
        typer.echo(f"Removed {outcome.pruned} spent output(s) from the cache.")
    elif outcome.status == SpendStatus.DECLINED:
        typer.echo("\nTransaction not broadcast. You can broadcast the hex manually.")
    elif outcome.status == SpendStatus.BROADCAST_FAILED:
        typer.echo(f"\nBroadcast failed: {outcome.message}")
        typer.echo("Signed transaction (broadcast manually if needed):")
        typer.echo(outcome.signed_hex or "")
    elif outcome.status == SpendStatus.ABORTED:
        typer.echo(f"\nTransaction not created: {outcome.message}")
    elif outcome.status == SpendStatus.NOTHING_TO_SPEND:
        typer.echo("\nNo spendable outputs found.")


MainnetOption = Annotated[
    bool | None,
    typer.Option("--mainnet/--testnet", help="Use mainnet (default: testnet, or ANGOR_NETWORK)"),
]
MnemonicOption = Annotated[
    str | None, typer.Option("--mnemonic", help="BIP39 mnemonic (or ANGOR_MNEMONIC)")
]
MnemonicFileOption = Annotated[
    Path | None, typer.Option("--mnemonic-file", "-f", help="Path to mnemonic file")
]
PassphraseOption = Annotated[
    str | None, typer.Option("--passphrase", help="BIP39 passphrase (or ANGOR_PASSPHRASE)")
]
CacheFileOption = Annotated[
    Path | None, typer.Option("--cache-file", "-c", help="UTXO cache file")
]
IndexerUrlOption = Annotated[
    str | None, typer.Option("--indexer-url", help="Override the network's indexer URL")
]
LogLevelOption = Annotated[str | None, typer.Option("--log-level", "-l", help="Log level")]


@app.command()
def run(
    mainnet: MainnetOption = None,
    mnemonic: MnemonicOption = None,
    mnemonic_file: MnemonicFileOption = None,
    passphrase: PassphraseOption = None,
    payout_address: Annotated[
        str | None,
        typer.Option(
            "--payout-address", "-p", help="Address receiving the consolidated funds"
        ),
    ] = None,
    cache_file: CacheFileOption = None,
    indexer_url: IndexerUrlOption = None,
    rescan: Annotated[
        bool | None,
        typer.Option("--rescan/--no-rescan", help="Answer the rescan prompt in advance"),
    ] = None,
    log_level: LogLevelOption = None,
) -> None:
    """Scan (or load cached) founder outputs and optionally consolidate them."""
    settings = _load_settings(
        mainnet,
        mnemonic,
        mnemonic_file,
        passphrase,
        payout_address,
        cache_file,
        indexer_url,
        log_level,
    )
    setup_logging(settings.log_level)

    if not settings.mnemonic.get_secret_value():
        logger.error("Mnemonic required. Use --mnemonic, --mnemonic-file, or ANGOR_MNEMONIC")
        raise typer.Exit(1)
    if not settings.payout_address:
        logger.error("Payout address required. Use --payout-address or ANGOR_PAYOUT_ADDRESS")
        raise typer.Exit(1)
    if not is_valid_address(settings.payout_address, settings.network):
        logger.error(
            f"Payout address {settings.payout_address} is not valid for {settings.network.value}"
        )
        raise typer.Exit(1)

    typer.echo("Angor Founder Spend Tool")
    typer.echo("-------------------------")
    _print_network(settings)

    asyncio.run(_run(settings, rescan))


async def _run(settings: SpendSettings, rescan: bool | None) -> None:
    session = SpendSession.from_settings(settings, ConsoleDecisions(settings.currency_symbol))
    try:
        outcome = await session.run(rescan)
        _report_outcome(outcome)
    finally:
        await session.close()


@app.command()
def scan(
    mainnet: MainnetOption = None,
    cache_file: CacheFileOption = None,
    indexer_url: IndexerUrlOption = None,
    clear: Annotated[
        bool, typer.Option("--clear", help="Clear the cache before scanning")
    ] = False,
    log_level: LogLevelOption = None,
) -> None:
    """Run a discovery pass and update the cache. No keys are needed."""
    settings = _load_settings(mainnet, None, None, None, None, cache_file, indexer_url, log_level)
    setup_logging(settings.log_level)
    _print_network(settings)

    asyncio.run(_scan(settings, clear))


async def _scan(settings: SpendSettings, clear: bool) -> None:
    gateway = HttpIndexer(settings.effective_indexer_url, timeout=settings.request_timeout)
    cache = UtxoCache(settings.cache_file)
    engine = ReconciliationEngine(gateway, cache, settings.page_size)

    try:
        unspent = cache.load()
        report = await engine.discover(unspent, clear_first=clear)
    finally:
        await gateway.close()

    symbol = settings.currency_symbol
    typer.echo("\n----- Summary -----")
    typer.echo(
        f"Projects: {report.projects}, investments: {report.investments}, "
        f"transactions: {report.transactions}"
    )
    typer.echo(f"Unspent found: {report.unspent_found}, evicted as spent: {report.spent_evicted}")
    typer.echo(f"Total unspent value: {format_amount(report.total_value, symbol)}")
    typer.echo(f"Number of unspent outputs: {report.output_count}")
    if report.skipped:
        typer.echo(f"\nSkipped {len(report.skipped)} item(s):")
        for item in report.skipped:
            typer.echo(f"  [{item.stage}] {item.reference}: {item.message}")


@app.command()
def show(
    mainnet: MainnetOption = None,
    cache_file: CacheFileOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """List cached unspent outputs and their total."""
    settings = _load_settings(mainnet, None, None, None, None, cache_file, None, log_level)
    setup_logging(settings.log_level)

    unspent = UtxoCache(settings.cache_file).load()
    symbol = settings.currency_symbol

    typer.echo(f"\nCached unspent outputs ({len(unspent)}):")
    _print_outputs(unspent.outputs(), symbol)
    typer.echo(f"\nTotal unspent value: {format_amount(unspent.total_value(), symbol)}")


@app.command()
def derive(
    founder_key: Annotated[
        str, typer.Option("--founder-key", "-k", help="Founder public key (hex)")
    ],
    mainnet: MainnetOption = None,
    mnemonic: MnemonicOption = None,
    mnemonic_file: MnemonicFileOption = None,
    passphrase: PassphraseOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Show the UPI, derivation path and (with a mnemonic) the address for a founder key."""
    settings = _load_settings(
        mainnet, mnemonic, mnemonic_file, passphrase, None, None, None, log_level
    )
    setup_logging(settings.log_level)

    try:
        upi = derive_unique_project_identifier(founder_key)
        typer.echo(f"UPI:  {upi}")
        typer.echo(f"Path: {derivation_path(settings.network, upi)}")

        if settings.mnemonic.get_secret_value():
            derived = settings.derivation_context().derive_for_founder(founder_key)
            typer.echo(f"Address: {derived.address}")
    except AngorSpendError as e:
        logger.error(str(e))
        raise typer.Exit(1)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
