"""
Tests for the persistent UTXO cache.
"""

import json

import pytest
from conftest import make_txid

from angorspend.cache import UtxoCache
from angorspend.errors import CacheIOError
from angorspend.models import UnspentOutput, UnspentSet


@pytest.fixture
def cache(tmp_path):
    return UtxoCache(tmp_path / "angor_spend_cache.json")


def sample_set() -> UnspentSet:
    return UnspentSet(
        [
            UnspentOutput(
                txid=make_txid(1),
                vout=0,
                value=50_000,
                address="tb1qfirst",
                script_type="v0_p2wpkh",
                founder_key="02" + "11" * 32,
            ),
            UnspentOutput(txid=make_txid(2), vout=0, value=30_000, address="tb1qsecond"),
        ]
    )


class TestUtxoCache:
    def test_missing_file_is_empty(self, cache):
        assert not cache.exists()
        unspent = cache.load()
        assert len(unspent) == 0

    def test_save_and_load(self, cache):
        original = sample_set()
        cache.save(original)

        restored = cache.load()
        assert restored.outputs() == original.outputs()
        assert restored.total_value() == 80_000

    def test_document_shape(self, cache):
        cache.save(sample_set())
        document = json.loads(cache.path.read_text())

        assert list(document) == ["UnspentOutputs"]
        first = document["UnspentOutputs"][0]
        assert first["TxId"] == make_txid(1)
        assert first["Value"] == 50_000
        assert first["FounderKey"] == "02" + "11" * 32

    def test_no_temp_file_left(self, cache):
        cache.save(sample_set())
        assert [p.name for p in cache.path.parent.iterdir()] == [cache.path.name]

    def test_empty_file_is_empty(self, cache):
        cache.path.write_text("  \n")
        assert len(cache.load()) == 0

    @pytest.mark.parametrize(
        "content",
        ["{not json", '{"UnspentOutputs": [{"TxId": "zz"}]}', "[1, 2, 3]"],
    )
    def test_malformed_file(self, cache, content):
        cache.path.write_text(content)

        with pytest.raises(CacheIOError):
            cache.load_snapshot()
        assert len(cache.load()) == 0

    def test_document_from_other_tools_resaves_unchanged(self, cache):
        document = {
            "UnspentOutputs": [
                {
                    "TxId": "AB" * 32,
                    "Vout": 0,
                    "Value": 1234,
                    "Address": None,
                    "ScriptType": "v0_p2wpkh",
                    "FounderKey": None,
                }
            ]
        }
        cache.path.write_text(json.dumps(document))

        unspent = cache.load()
        assert unspent.get("ab" * 32, 0).value == 1234
        assert ("ab" * 32, 0) in unspent

        cache.save(unspent)
        assert json.loads(cache.path.read_text()) == document

    def test_clear(self, cache):
        cache.save(sample_set())
        cache.clear()
        assert json.loads(cache.path.read_text()) == {"UnspentOutputs": []}

    def test_write_failure(self, tmp_path):
        target = tmp_path / "occupied"
        target.mkdir()
        with pytest.raises(CacheIOError):
            UtxoCache(target).save(sample_set())

    def test_creates_parent_directory(self, tmp_path):
        cache = UtxoCache(tmp_path / "nested" / "dir" / "cache.json")
        cache.save(sample_set())
        assert cache.exists()
