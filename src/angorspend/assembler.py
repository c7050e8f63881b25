"""
Transaction assembler for consolidating founder outputs.

Builds a single-output P2WPKH consolidation transaction:
- Inputs: the selected cached outputs, each signed with its own derived key
- Output: payout address, total input value minus the flat fee

Before anything is signed, the key derived for every input must reproduce the cached
address of that input. Any mismatch aborts the whole assembly.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from coincurve import PrivateKey
from loguru import logger

from angorspend.backends.base import IndexerGateway
from angorspend.constants import FEE_BASE, FEE_PER_INPUT
from angorspend.errors import (
    AddressMismatchError,
    InsufficientValueError,
    InvalidPayoutAddressError,
    MissingFounderKeyError,
    RemoteLookupError,
    TransactionVerificationError,
)
from angorspend.models import NetworkType, Outpoint, UnspentOutput
from angorspend.wallet.address import address_to_scriptpubkey
from angorspend.wallet.derivation import DerivationContext
from angorspend.wallet.signing import sign_p2wpkh_input, verify_transaction
from angorspend.wallet.transaction import Transaction, TxInput, TxOutput


def calculate_fee(input_count: int) -> int:
    """Flat fee heuristic: 1000 sats per input plus 500."""
    return input_count * FEE_PER_INPUT + FEE_BASE


@dataclass
class CandidateTransaction:
    """A signed, verified consolidation transaction. Never persisted."""

    outputs: list[UnspentOutput]
    payout_address: str
    total_input: int
    fee: int
    payout: int
    transaction: Transaction
    network: NetworkType

    @property
    def tx_hex(self) -> str:
        return self.transaction.to_hex()

    @property
    def txid(self) -> str:
        return self.transaction.txid

    @property
    def outpoints(self) -> list[Outpoint]:
        return [o.outpoint for o in self.outputs]

    def summary(self) -> dict[str, Any]:
        summary = self.transaction.summary(self.network)
        summary["fee"] = self.fee
        summary["payout"] = self.payout
        summary["payout_address"] = self.payout_address
        return summary


class TransactionAssembler:
    def __init__(
        self,
        gateway: IndexerGateway,
        derivation: DerivationContext,
        payout_address: str,
    ):
        self.gateway = gateway
        self.derivation = derivation
        self.payout_address = payout_address.strip() if payout_address else ""

    @property
    def network(self) -> NetworkType:
        return self.derivation.network

    def _check_preconditions(self, selection: Sequence[UnspentOutput]) -> bytes:
        if not selection:
            raise ValueError("No unspent outputs provided to spend")
        if not self.payout_address:
            raise InvalidPayoutAddressError("No payout address specified")

        try:
            payout_script = address_to_scriptpubkey(self.payout_address, self.network)
        except ValueError as e:
            raise InvalidPayoutAddressError(
                f"Invalid payout address for {self.network.value}: {e}"
            ) from e

        for output in selection:
            if not output.has_founder_key:
                raise MissingFounderKeyError(f"FounderKey is missing for UTXO {output.output_id}")

        outpoints = [o.outpoint for o in selection]
        if len(set(outpoints)) != len(outpoints):
            raise ValueError("Selection contains the same output more than once")

        return payout_script

    async def fetch_locking_script(self, output: UnspentOutput) -> bytes:
        """Current scriptPubKey of the output from the indexer's transaction record."""
        tx = await self.gateway.get_transaction(output.txid.lower())

        if output.vout >= len(tx.vout):
            raise RemoteLookupError(
                f"Output index {output.vout} is out of range for transaction {output.txid}"
            )

        remote = tx.vout[output.vout]
        if not remote.scriptpubkey:
            raise RemoteLookupError(f"ScriptPubKey is missing for UTXO {output.output_id}")
        if remote.value != output.value:
            raise RemoteLookupError(
                f"UTXO {output.output_id} value {remote.value} does not match "
                f"cached value {output.value}"
            )

        try:
            return bytes.fromhex(remote.scriptpubkey)
        except ValueError as e:
            raise RemoteLookupError(
                f"ScriptPubKey for UTXO {output.output_id} is not valid hex"
            ) from e

    async def assemble(self, selection: Sequence[UnspentOutput]) -> CandidateTransaction:
        """
        Build, sign and verify a consolidation transaction for the selected outputs.

        Raises on any failed precondition, lookup or integrity check; nothing is signed
        unless every input's derived address matches its cached address.
        """
        payout_script = self._check_preconditions(selection)
        logger.info(f"Creating transaction spending {len(selection)} output(s)")

        # Invalid seed fails here, before any lookups
        self.derivation.root_key

        inputs: list[TxInput] = []
        signing_keys: list[PrivateKey] = []

        for output in selection:
            scriptpubkey = await self.fetch_locking_script(output)
            inputs.append(
                TxInput(
                    txid=output.txid,
                    vout=output.vout,
                    value=output.value,
                    scriptpubkey=scriptpubkey,
                )
            )

            derived = self.derivation.derive_for_founder(output.founder_key)
            logger.info(
                f"Prepared input {len(inputs) - 1} (UTXO: {output.output_id}) "
                f"using derived key for UPI {derived.upi} ({derived.path})"
            )
            logger.debug(f"Expected address: {derived.address}, UTXO address: {output.address}")

            if not output.address or derived.address.lower() != output.address.lower():
                raise AddressMismatchError(output.output_id, derived.address, output.address or "")

            logger.debug(f"Address verification successful for {output.output_id}")
            signing_keys.append(derived.private_key)

        total_input = sum(inp.value for inp in inputs)
        fee = calculate_fee(len(inputs))
        payout = total_input - fee
        if payout <= 0:
            raise InsufficientValueError(total_input, fee)

        tx = Transaction(
            inputs=inputs,
            outputs=[TxOutput(value=payout, scriptpubkey=payout_script)],
        )

        witnesses = [sign_p2wpkh_input(tx, i, key) for i, key in enumerate(signing_keys)]
        for inp, witness in zip(inputs, witnesses):
            inp.witness = witness

        errors = verify_transaction(tx)
        if errors:
            raise TransactionVerificationError(
                f"Transaction verification failed: {'; '.join(errors)}"
            )

        logger.info(
            f"Transaction built and verified: {tx.txid} "
            f"(inputs {total_input} sats, fee {fee} sats, payout {payout} sats)"
        )

        return CandidateTransaction(
            outputs=list(selection),
            payout_address=self.payout_address,
            total_input=total_input,
            fee=fee,
            payout=payout,
            transaction=tx,
            network=self.network,
        )

    async def broadcast(self, candidate: CandidateTransaction) -> str:
        return await self.gateway.broadcast_transaction(candidate.tx_hex)
