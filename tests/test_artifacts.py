"""Compiled artifact lookup."""

import json
from pathlib import Path

import pytest

from kredly_deploy.artifacts import ArtifactNotFound, ArtifactStore


def _write(path: Path, data: dict):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))


@pytest.fixture()
def store(tmp_path) -> ArtifactStore:
    _write(tmp_path / "contracts/Pool/PoolLens.sol/PoolLens.json", {"abi": [{"type": "function", "name": "getAllPools"}], "bytecode": "0x6080"})
    _write(tmp_path / "contracts/Pool/PoolLens.sol/PoolLens.dbg.json", {"buildInfo": "../build-info/1.json"})
    _write(tmp_path / "build-info/1.json", {"output": {}})
    _write(tmp_path / "@openzeppelin/contracts/token/ERC20/ERC20.sol/ERC20.json", {"abi": [], "bytecode": "0x01"})
    _write(tmp_path / "contracts/test/ERC20.sol/ERC20.json", {"abi": [], "bytecode": "0x02"})
    # Foundry output format
    _write(tmp_path / "out/Beacon.sol/UpgradeableBeacon.json", {"abi": [], "bytecode": {"object": "6080"}})
    return ArtifactStore(tmp_path)


def test_find_by_name(store: ArtifactStore):
    assert store.get_abi("PoolLens")[0]["name"] == "getAllPools"
    assert store.get_bytecode("PoolLens") == "0x6080"


def test_debug_files_not_indexed(store: ArtifactStore):
    with pytest.raises(ArtifactNotFound):
        store.find("PoolLens.dbg")
    with pytest.raises(ArtifactNotFound):
        store.find("1")


def test_ambiguous_name(store: ArtifactStore):
    with pytest.raises(ArtifactNotFound, match="Ambiguous"):
        store.find("ERC20")
    assert store.get_bytecode("@openzeppelin/contracts/token/ERC20/ERC20.sol:ERC20") == "0x01"
    assert store.get_bytecode("contracts/test/ERC20.sol:ERC20") == "0x02"


def test_foundry_bytecode(store: ArtifactStore):
    assert store.get_bytecode("UpgradeableBeacon") == "0x6080"


def test_missing(store: ArtifactStore):
    with pytest.raises(ArtifactNotFound):
        store.find("Comptroller")
