"""
Angor founder key derivation tree.

Path layout:
- mainnet: m/{upi}
- other networks: m/5'/{upi}

The UPI (unique project identifier) is a 31-bit value computed from the founder's
public key, used as a non-hardened child index under the network root.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from functools import cached_property

from coincurve import PrivateKey, PublicKey
from loguru import logger

from angorspend.constants import HARDENED_OFFSET, TESTNET_ROOT_INDEX, UPI_MASK
from angorspend.errors import InvalidFounderKeyError, InvalidSeedError
from angorspend.models import NetworkType
from angorspend.wallet.address import pubkey_to_p2wpkh_address
from angorspend.wallet.bip32 import HDKey, is_valid_mnemonic, mnemonic_to_seed


def derive_master_key(seed_phrase: str, passphrase: str | None = "") -> HDKey:
    """Master key m from a BIP39 mnemonic. Empty and absent passphrases are equivalent."""
    if not seed_phrase or not seed_phrase.strip():
        raise InvalidSeedError("Seed phrase cannot be empty")
    if not is_valid_mnemonic(seed_phrase):
        raise InvalidSeedError("Seed phrase is not a valid BIP39 mnemonic")

    logger.debug(
        f"Deriving master key (m) using passphrase: {'[provided]' if passphrase else '[empty]'}"
    )
    try:
        return HDKey.from_seed(mnemonic_to_seed(seed_phrase, passphrase or ""))
    except ValueError as e:
        raise InvalidSeedError(f"Failed to derive master key: {e}") from e


def derive_root_key(master_key: HDKey, network: NetworkType | str) -> HDKey:
    """Angor root: m itself on mainnet, m/5' on every other network."""
    if NetworkType(network) == NetworkType.MAINNET:
        return master_key
    return master_key.derive_child(TESTNET_ROOT_INDEX, hardened=True)


def parse_founder_key(founder_key_hex: str) -> PublicKey:
    if not founder_key_hex or not founder_key_hex.strip():
        raise InvalidFounderKeyError("Founder key cannot be empty")
    try:
        return PublicKey(bytes.fromhex(founder_key_hex.strip()))
    except ValueError as e:
        raise InvalidFounderKeyError(f"Invalid founder key {founder_key_hex!r}: {e}") from e


def derive_unique_project_identifier(founder_key_hex: str) -> int:
    """
    UPI = low 64 bits of SHA256d(compressed founder pubkey), masked to 31 bits.

    The digest is read as a little-endian 256-bit integer, so the low 64 bits are the
    first eight bytes of the digest.
    """
    pubkey = parse_founder_key(founder_key_hex)
    digest = hashlib.sha256(hashlib.sha256(pubkey.format(compressed=True)).digest()).digest()
    low64 = int.from_bytes(digest[:8], "little")
    upi = low64 & UPI_MASK

    if upi >= HARDENED_OFFSET:
        raise InvalidFounderKeyError(
            f"Derived UPI {upi} is out of range for founder key {founder_key_hex}"
        )

    logger.debug(f"Derived UPI {upi} for founder key {founder_key_hex}")
    return upi


def derive_input_private_key(root_key: HDKey, upi: int) -> PrivateKey:
    """Non-hardened child of the root at index upi."""
    return root_key.derive_child(upi, hardened=False).private_key


def derive_address(private_key: PrivateKey, network: NetworkType | str) -> str:
    pubkey_hex = private_key.public_key.format(compressed=True).hex()
    return pubkey_to_p2wpkh_address(pubkey_hex, network)


def derivation_path(network: NetworkType | str, upi: int) -> str:
    if NetworkType(network) == NetworkType.MAINNET:
        return f"m/{upi}"
    return f"m/{TESTNET_ROOT_INDEX}'/{upi}"


@dataclass(frozen=True)
class DerivedInputKey:
    upi: int
    path: str
    private_key: PrivateKey
    address: str


@dataclass(frozen=True)
class DerivationContext:
    """
    (seed phrase, passphrase, network). Immutable; every derivation is a pure function
    of this context and a founder key. The root key is computed once on first use.
    """

    seed_phrase: str = field(repr=False)
    passphrase: str = field(default="", repr=False)
    network: NetworkType = NetworkType.TESTNET

    def master_key(self) -> HDKey:
        return derive_master_key(self.seed_phrase, self.passphrase)

    @cached_property
    def root_key(self) -> HDKey:
        return derive_root_key(self.master_key(), self.network)

    def derive_for_founder(self, founder_key_hex: str) -> DerivedInputKey:
        upi = derive_unique_project_identifier(founder_key_hex)
        private_key = derive_input_private_key(self.root_key, upi)
        path = derivation_path(self.network, upi)
        logger.debug(f"Deriving input key using path: {path}")
        return DerivedInputKey(
            upi=upi,
            path=path,
            private_key=private_key,
            address=derive_address(private_key, self.network),
        )
