"""
Bitcoin transaction signing utilities for P2WPKH inputs (BIP143).
"""

from __future__ import annotations

import struct

from coincurve import PrivateKey, PublicKey

from angorspend.constants import SIGHASH_ALL
from angorspend.errors import SigningError
from angorspend.wallet.address import hash160, pubkey_to_p2wpkh_script
from angorspend.wallet.transaction import Transaction, hash256, varint


def compute_sighash_segwit(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    value: int,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    try:
        if input_index >= len(tx.inputs):
            raise SigningError("Input index out of range")

        hash_prevouts = hash256(b"".join(inp.outpoint for inp in tx.inputs))
        hash_sequence = hash256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs))
        hash_outputs = hash256(
            b"".join(
                struct.pack("<Q", out.value) + varint(len(out.scriptpubkey)) + out.scriptpubkey
                for out in tx.outputs
            )
        )

        target_input = tx.inputs[input_index]

        preimage = (
            struct.pack("<I", tx.version)
            + hash_prevouts
            + hash_sequence
            + target_input.outpoint
            + varint(len(script_code))
            + script_code
            + struct.pack("<Q", value)
            + struct.pack("<I", target_input.sequence)
            + hash_outputs
            + struct.pack("<I", tx.locktime)
            + struct.pack("<I", sighash_type)
        )

        return hash256(preimage)

    except SigningError:
        raise
    except Exception as e:
        raise SigningError(f"Failed to compute sighash: {e}") from e


def create_p2wpkh_script_code(pubkey_bytes: bytes) -> bytes:
    """Create the scriptCode for P2WPKH signing (BIP 143).

    For P2WPKH, the scriptCode is the P2PKH script:
    OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
    """
    return b"\x76\xa9\x14" + hash160(pubkey_bytes) + b"\x88\xac"


def sign_p2wpkh_input(
    tx: Transaction,
    input_index: int,
    private_key: PrivateKey,
    sighash_type: int = SIGHASH_ALL,
) -> list[bytes]:
    """Sign a P2WPKH input and return its witness stack [signature, pubkey].

    The value committed to is the input's own value; the signature is DER-encoded with
    the sighash type byte appended.
    """
    pubkey_bytes = private_key.public_key.format(compressed=True)
    script_code = create_p2wpkh_script_code(pubkey_bytes)
    value = tx.inputs[input_index].value
    sighash = compute_sighash_segwit(tx, input_index, script_code, value, sighash_type)

    # The sighash is already SHA256d; hasher=None skips hashing
    signature = private_key.sign(sighash, hasher=None)

    return [signature + bytes([sighash_type]), pubkey_bytes]


def verify_p2wpkh_input(tx: Transaction, input_index: int) -> str | None:
    """
    Check one signed input against its locking script.

    Returns None when valid, otherwise a description of the failure.
    """
    inp = tx.inputs[input_index]
    if len(inp.witness) != 2:
        return f"input {input_index}: expected 2 witness items, got {len(inp.witness)}"

    sig_with_type, pubkey_bytes = inp.witness
    if len(pubkey_bytes) != 33:
        return f"input {input_index}: witness pubkey is not compressed"
    if pubkey_to_p2wpkh_script(pubkey_bytes) != inp.scriptpubkey:
        return f"input {input_index}: witness pubkey does not match locking script"
    if not sig_with_type or sig_with_type[-1] != SIGHASH_ALL:
        return f"input {input_index}: unexpected sighash type"

    script_code = create_p2wpkh_script_code(pubkey_bytes)
    sighash = compute_sighash_segwit(tx, input_index, script_code, inp.value, SIGHASH_ALL)
    try:
        valid = PublicKey(pubkey_bytes).verify(sig_with_type[:-1], sighash, hasher=None)
    except ValueError as e:
        return f"input {input_index}: malformed signature ({e})"

    if not valid:
        return f"input {input_index}: signature does not verify"
    return None


def verify_transaction(tx: Transaction) -> list[str]:
    """Verify every input and the value balance. Returns the list of errors."""
    errors = []
    for i in range(len(tx.inputs)):
        error = verify_p2wpkh_input(tx, i)
        if error:
            errors.append(error)

    total_in = sum(inp.value for inp in tx.inputs)
    total_out = sum(out.value for out in tx.outputs)
    if total_out > total_in:
        errors.append(f"outputs ({total_out}) exceed inputs ({total_in})")

    return errors
