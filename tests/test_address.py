"""
Tests for address encoding and payout address parsing.
"""

import base58
import bech32
import pytest
from conftest import TESTNET_PAYOUT

from angorspend.models import NetworkType
from angorspend.wallet.address import (
    address_to_scriptpubkey,
    hash160,
    is_valid_address,
    pubkey_to_p2wpkh_address,
    pubkey_to_p2wpkh_script,
    scriptpubkey_to_address,
)

# Generator point, the pubkey behind the BIP173 P2WPKH examples
G_PUBKEY = "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
G_HASH160 = "751e76e8199196d454941c45d1b3a323f1433bd6"


class TestP2WPKH:
    def test_hash160(self):
        assert hash160(bytes.fromhex(G_PUBKEY)).hex() == G_HASH160

    def test_mainnet_address(self):
        assert (
            pubkey_to_p2wpkh_address(G_PUBKEY, NetworkType.MAINNET)
            == "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
        )

    def test_testnet_address(self):
        assert pubkey_to_p2wpkh_address(G_PUBKEY, "testnet") == TESTNET_PAYOUT

    def test_rejects_uncompressed(self):
        with pytest.raises(ValueError, match="length"):
            pubkey_to_p2wpkh_address("04" + "11" * 64)

    def test_script(self):
        script = pubkey_to_p2wpkh_script(bytes.fromhex(G_PUBKEY))
        assert script.hex() == "0014" + G_HASH160


class TestAddressToScriptPubKey:
    def test_p2wpkh(self):
        assert address_to_scriptpubkey(TESTNET_PAYOUT, "testnet").hex() == "0014" + G_HASH160

    def test_uppercase_bech32(self):
        script = address_to_scriptpubkey(TESTNET_PAYOUT.upper(), NetworkType.TESTNET)
        assert script.hex() == "0014" + G_HASH160

    def test_p2wsh(self):
        program = bytes(range(32))
        address = bech32.encode("tb", 0, program)
        assert address_to_scriptpubkey(address, "testnet") == b"\x00\x20" + program

    def test_legacy_p2pkh(self):
        address = base58.b58encode_check(b"\x00" + bytes.fromhex(G_HASH160)).decode()
        script = address_to_scriptpubkey(address, NetworkType.MAINNET)
        assert script.hex() == "76a914" + G_HASH160 + "88ac"

    def test_legacy_p2sh_testnet(self):
        address = base58.b58encode_check(b"\xc4" + bytes.fromhex(G_HASH160)).decode()
        script = address_to_scriptpubkey(address, NetworkType.TESTNET)
        assert script.hex() == "a914" + G_HASH160 + "87"

    def test_wrong_network_bech32(self):
        mainnet = pubkey_to_p2wpkh_address(G_PUBKEY, "mainnet")
        with pytest.raises(ValueError):
            address_to_scriptpubkey(mainnet, NetworkType.TESTNET)

    def test_wrong_network_base58(self):
        address = base58.b58encode_check(b"\x00" + bytes.fromhex(G_HASH160)).decode()
        with pytest.raises(ValueError, match="not valid for testnet"):
            address_to_scriptpubkey(address, NetworkType.TESTNET)

    def test_bad_checksum(self):
        broken = TESTNET_PAYOUT[:-1] + ("q" if TESTNET_PAYOUT[-1] != "q" else "p")
        with pytest.raises(ValueError):
            address_to_scriptpubkey(broken, NetworkType.TESTNET)

    def test_empty(self):
        with pytest.raises(ValueError, match="Empty"):
            address_to_scriptpubkey("  ", NetworkType.TESTNET)

    def test_is_valid_address(self):
        assert is_valid_address(TESTNET_PAYOUT, "testnet")
        assert not is_valid_address(TESTNET_PAYOUT, "mainnet")
        assert not is_valid_address("garbage", "testnet")


class TestScriptPubKeyToAddress:
    def test_p2wpkh(self):
        script = bytes.fromhex("0014" + G_HASH160)
        assert scriptpubkey_to_address(script, NetworkType.TESTNET) == TESTNET_PAYOUT

    def test_legacy_round_trip(self):
        address = base58.b58encode_check(b"\x6f" + bytes.fromhex(G_HASH160)).decode()
        script = address_to_scriptpubkey(address, "testnet")
        assert scriptpubkey_to_address(script, "testnet") == address

    def test_unsupported(self):
        with pytest.raises(ValueError, match="Unsupported"):
            scriptpubkey_to_address(bytes.fromhex("6a00"), "testnet")
