"""Compiled contract artifacts.

Load ABI and creation bytecode produced by the Solidity build
(Hardhat ``artifacts/`` or Foundry ``out/`` folder) by contract name.

Contract names are either plain, ``Comptroller``, or fully qualified,
``@openzeppelin/contracts/token/ERC20/ERC20.sol:ERC20``, when two
sources define a contract with the same name.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Type

from web3 import Web3
from web3.contract import Contract

logger = logging.getLogger(__name__)


class ArtifactNotFound(Exception):
    """No compiled artifact for the contract name."""


class ArtifactStore:
    """Index of compiled artifacts under one build folder."""

    def __init__(self, path: Path):
        assert isinstance(path, Path), f"Expected Path, got {type(path)}"
        self.path = path
        self._index: dict[str, list[Path]] | None = None

    def __repr__(self):
        return f"<ArtifactStore {self.path}>"

    def _build_index(self) -> dict[str, list[Path]]:
        index: dict[str, list[Path]] = {}
        if not self.path.exists():
            logger.warning("Artifact folder %s does not exist", self.path)
            return index

        for fname in self.path.rglob("*.json"):
            # Hardhat debug files and solc build info are not artifacts
            if fname.name.endswith(".dbg.json") or "build-info" in fname.parts:
                continue
            index.setdefault(fname.stem, []).append(fname)
        logger.info("Indexed %d contract artifacts at %s", len(index), self.path)
        return index

    def find(self, contract_name: str) -> Path:
        """Find the artifact file of a contract.

        :raise ArtifactNotFound:
            Unknown or ambiguous contract name
        """
        if self._index is None:
            self._index = self._build_index()

        if ":" in contract_name:
            source, name = contract_name.rsplit(":", 1)
            candidates = [p for p in self._index.get(name, []) if p.parent.as_posix().endswith(source)]
        else:
            candidates = self._index.get(contract_name, [])

        if len(candidates) == 0:
            raise ArtifactNotFound(f"No compiled artifact for {contract_name} in {self.path}")
        if len(candidates) > 1:
            raise ArtifactNotFound(f"Ambiguous contract name {contract_name}, use fully qualified name: {[str(c) for c in candidates]}")
        return candidates[0]

    def load(self, contract_name: str) -> dict:
        """Read an artifact as a dict with ``abi`` and ``bytecode`` keys."""
        return _read_artifact(self.find(contract_name))

    def get_abi(self, contract_name: str) -> list:
        return self.load(contract_name)["abi"]

    def get_bytecode(self, contract_name: str) -> str | None:
        """Creation bytecode as a hex string."""
        bytecode = self.load(contract_name).get("bytecode")
        if type(bytecode) == dict:
            # Foundry
            bytecode = bytecode["object"]
        if bytecode and not bytecode.startswith("0x"):
            bytecode = "0x" + bytecode
        return bytecode

    def get_contract(self, web3: Web3, contract_name: str) -> Type[Contract]:
        """Get Contract proxy class for a compiled contract."""
        return web3.eth.contract(abi=self.get_abi(contract_name), bytecode=self.get_bytecode(contract_name))


@lru_cache(maxsize=512)
def _read_artifact(fname: Path) -> dict:
    with open(fname, "rt", encoding="utf-8") as f:
        return json.load(f)
