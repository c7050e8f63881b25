"""
Bitcoin address utilities.

Founder outputs are always P2WPKH; payout addresses may be any standard type as long as
they belong to the configured network.
"""

from __future__ import annotations

import hashlib

import base58
import bech32

from angorspend.models import NetworkType

# Base58 version bytes per network: (P2PKH, P2SH)
BASE58_VERSIONS = {
    NetworkType.MAINNET: (0x00, 0x05),
    NetworkType.TESTNET: (0x6F, 0xC4),
}


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def get_bech32_hrp(network: NetworkType | str) -> str:
    return NetworkType(network).bech32_hrp


def pubkey_to_p2wpkh_address(pubkey_hex: str, network: NetworkType | str = "mainnet") -> str:
    """
    Convert compressed public key to P2WPKH (native segwit) address.
    BIP173 bech32 encoding.
    """
    pubkey_bytes = bytes.fromhex(pubkey_hex)

    if len(pubkey_bytes) != 33:
        raise ValueError(f"Invalid compressed pubkey length: {len(pubkey_bytes)}")

    address = bech32.encode(get_bech32_hrp(network), 0, hash160(pubkey_bytes))
    if address is None:
        raise ValueError(f"Failed to encode P2WPKH address for {pubkey_hex}")
    return address


def pubkey_to_p2wpkh_script(pubkey_bytes: bytes) -> bytes:
    """Create P2WPKH scriptPubKey (OP_0 <20-byte-hash>)"""
    return bytes([0x00, 0x14]) + hash160(pubkey_bytes)


def address_to_scriptpubkey(address: str, network: NetworkType | str) -> bytes:
    """
    Convert an address of the given network to its scriptPubKey.

    Supports P2WPKH, P2WSH, P2TR and legacy P2PKH / P2SH.
    Raises ValueError if the address is malformed or belongs to another network.
    """
    network = NetworkType(network)
    address = address.strip()
    if not address:
        raise ValueError("Empty address")

    hrp = network.bech32_hrp
    if address.lower().startswith(hrp + "1"):
        witver, witprog = bech32.decode(hrp, address)
        if witver is None or witprog is None:
            raise ValueError(f"Invalid bech32 address: {address}")

        program = bytes(witprog)
        if witver == 0 and len(program) == 20:
            return bytes([0x00, 0x14]) + program
        if witver == 0 and len(program) == 32:
            return bytes([0x00, 0x20]) + program
        if witver == 1 and len(program) == 32:
            return bytes([0x51, 0x20]) + program
        raise ValueError(f"Unsupported witness program in {address}")

    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise ValueError(f"Invalid address for {network.value}: {address}") from e

    if len(decoded) != 21:
        raise ValueError(f"Invalid base58 payload length in {address}")

    p2pkh_version, p2sh_version = BASE58_VERSIONS[network]
    version, payload = decoded[0], decoded[1:]
    if version == p2pkh_version:
        # OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
        return bytes([0x76, 0xA9, 0x14]) + payload + bytes([0x88, 0xAC])
    if version == p2sh_version:
        # OP_HASH160 <20-byte-scripthash> OP_EQUAL
        return bytes([0xA9, 0x14]) + payload + bytes([0x87])

    raise ValueError(f"Address {address} is not valid for {network.value}")


def is_valid_address(address: str, network: NetworkType | str) -> bool:
    try:
        address_to_scriptpubkey(address, network)
    except ValueError:
        return False
    return True


def scriptpubkey_to_address(scriptpubkey: bytes, network: NetworkType | str) -> str:
    """Convert scriptPubKey back to an address (used for the decoded summary)."""
    network = NetworkType(network)
    hrp = network.bech32_hrp
    p2pkh_version, p2sh_version = BASE58_VERSIONS[network]

    if len(scriptpubkey) == 22 and scriptpubkey[:2] == b"\x00\x14":
        result = bech32.encode(hrp, 0, scriptpubkey[2:])
    elif len(scriptpubkey) == 34 and scriptpubkey[:2] == b"\x00\x20":
        result = bech32.encode(hrp, 0, scriptpubkey[2:])
    elif len(scriptpubkey) == 34 and scriptpubkey[:2] == b"\x51\x20":
        result = bech32.encode(hrp, 1, scriptpubkey[2:])
    elif (
        len(scriptpubkey) == 25
        and scriptpubkey[:3] == b"\x76\xa9\x14"
        and scriptpubkey[23:] == b"\x88\xac"
    ):
        result = base58.b58encode_check(bytes([p2pkh_version]) + scriptpubkey[3:23]).decode()
    elif len(scriptpubkey) == 23 and scriptpubkey[:2] == b"\xa9\x14" and scriptpubkey[22] == 0x87:
        result = base58.b58encode_check(bytes([p2sh_version]) + scriptpubkey[2:22]).decode()
    else:
        result = None

    if result is None:
        raise ValueError(f"Unsupported scriptPubKey: {scriptpubkey.hex()}")
    return result
