"""
BIP32 private-key derivation for the Angor founder tree.

Only private (CKDpriv) derivation is needed: every key derived here signs an input.
Mnemonic validation and PBKDF2 seed stretching use python-mnemonic.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass

from coincurve import PrivateKey
from mnemonic import Mnemonic

from angorspend.constants import HARDENED_OFFSET

# secp256k1 group order
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

_MASTER_HMAC_KEY = b"Bitcoin seed"


def _split_hmac(key: bytes, data: bytes) -> tuple[int, bytes]:
    digest = hmac.new(key, data, hashlib.sha512).digest()
    return int.from_bytes(digest[:32], "big"), digest[32:]


def parse_path(path: str) -> list[tuple[int, bool]]:
    """
    Parse "m/5'/1234" into [(5, True), (1234, False)].

    Both ' and h mark a hardened step. Indices are the unoffset values.
    """
    segments = path.strip().split("/")
    if segments[0] != "m":
        raise ValueError(f"Path must start with 'm': {path!r}")

    steps = []
    for segment in segments[1:]:
        if not segment:
            continue
        hardened = segment[-1] in "'hH"
        digits = segment[:-1] if hardened else segment
        if not digits.isdigit():
            raise ValueError(f"Invalid path segment {segment!r} in {path!r}")
        steps.append((int(digits), hardened))
    return steps


@dataclass(frozen=True)
class HDKey:
    """Extended private key: secp256k1 key, chain code and depth in the tree."""

    private_key: PrivateKey
    chain_code: bytes
    depth: int = 0

    @classmethod
    def from_seed(cls, seed: bytes) -> HDKey:
        """Master key m from a BIP32 seed."""
        key_int, chain_code = _split_hmac(_MASTER_HMAC_KEY, seed)
        if not 0 < key_int < SECP256K1_N:
            raise ValueError("Seed produces an invalid master key")
        return cls(PrivateKey(key_int.to_bytes(32, "big")), chain_code)

    @property
    def secret(self) -> bytes:
        return self.private_key.secret

    @property
    def public_key_bytes(self) -> bytes:
        """Compressed SEC encoding of the public key."""
        return self.private_key.public_key.format(compressed=True)

    def derive_child(self, index: int, hardened: bool = False) -> HDKey:
        """Child at `index` (0 <= index < 2^31); hardened children use index + 2^31."""
        if not 0 <= index < HARDENED_OFFSET:
            raise ValueError(f"Child index out of range: {index}")

        if hardened:
            index += HARDENED_OFFSET
            data = b"\x00" + self.secret
        else:
            data = self.public_key_bytes

        tweak, chain_code = _split_hmac(self.chain_code, data + index.to_bytes(4, "big"))
        if tweak >= SECP256K1_N:
            raise ValueError(f"Child {index} is not a valid key")

        child_int = (tweak + int.from_bytes(self.secret, "big")) % SECP256K1_N
        if child_int == 0:
            raise ValueError(f"Child {index} is not a valid key")

        return HDKey(PrivateKey(child_int.to_bytes(32, "big")), chain_code, self.depth + 1)

    def derive(self, path: str) -> HDKey:
        key = self
        for index, hardened in parse_path(path):
            key = key.derive_child(index, hardened=hardened)
        return key

    def address(self, network: str = "mainnet") -> str:
        """P2WPKH address of this key."""
        from angorspend.wallet.address import pubkey_to_p2wpkh_address

        return pubkey_to_p2wpkh_address(self.public_key_bytes.hex(), network)


def normalize_mnemonic(words: str) -> str:
    return " ".join(words.lower().split())


def is_valid_mnemonic(words: str) -> bool:
    """Word list membership and BIP39 checksum."""
    normalized = normalize_mnemonic(words)
    if not normalized:
        return False
    try:
        return Mnemonic("english").check(normalized)
    except (ValueError, LookupError):
        return False


def mnemonic_to_seed(words: str, passphrase: str = "") -> bytes:
    """BIP39 seed (PBKDF2-HMAC-SHA512, 2048 rounds). No passphrase means an empty one."""
    return Mnemonic.to_seed(normalize_mnemonic(words), passphrase=passphrase or "")
