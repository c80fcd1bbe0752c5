"""Deployment registry.

Keeps track of ``deployment name -> address, ABI`` records.

- The presence of a named record is the only signal the harness uses
  to decide something is already deployed, see :py:mod:`kredly_deploy.diff`

- On live networks records are persisted as one JSON file per deployment,
  ``<root>/<network>/<name>.json``, so an interrupted run can be resumed

- On the local test network records live in memory only

"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Iterable

from filelock import FileLock
from tabulate import tabulate

logger = logging.getLogger(__name__)


class DeploymentNotFound(Exception):
    """No deployment recorded under the name."""


@dataclass(slots=True)
class DeploymentRecord:
    """One named deployment."""

    name: str

    #: Checksummed address of the deployed contract (proxy address for proxies)
    address: str

    #: ABI used to interact with the contract
    abi: list = field(default_factory=list)

    #: Artifact name the contract was deployed from
    contract: str | None = None

    #: Constructor arguments, JSON serialisable
    args: list = field(default_factory=list)

    transaction_hash: str | None = None

    #: Keccak of the creation bytecode, used to detect changed artifacts
    bytecode_hash: str | None = None

    #: Implementation address behind a proxy
    implementation: str | None = None

    def to_json(self) -> dict:
        return asdict(self)

    @staticmethod
    def from_json(data: dict) -> "DeploymentRecord":
        return DeploymentRecord(**data)


class DeploymentRegistry:
    """Name to deployment record store.

    Example:

    .. code-block:: python

        registry = DeploymentRegistry.open(Path("deployments"), "sepolia")
        if registry.has("PoolRegistry"):
            print(registry.get("PoolRegistry").address)

    """

    def __init__(self, path: Path | None = None):
        """Create a registry.

        :param path:
            Folder for the deployment files of one network.

            If not given, keep records in memory only.
        """
        assert path is None or isinstance(path, Path), f"Expected Path, got {type(path)}"
        self.path = path
        self.records: dict[str, DeploymentRecord] = {}
        if path is not None and path.exists():
            self._load()

    def __repr__(self):
        return f"<DeploymentRegistry at {self.path or 'memory'}, {len(self.records)} deployments>"

    @staticmethod
    def open(root: Path, network: str) -> "DeploymentRegistry":
        """Open the file backed registry of a network."""
        return DeploymentRegistry(root / network)

    def _load(self):
        for fname in sorted(self.path.glob("*.json")):
            data = json.loads(fname.read_text(encoding="utf-8"))
            record = DeploymentRecord.from_json(data)
            self.records[record.name] = record
        logger.info("Loaded %d deployments from %s", len(self.records), self.path)

    def has(self, name: str) -> bool:
        """Is there a deployment recorded under this name."""
        return name in self.records

    def get(self, name: str) -> DeploymentRecord:
        """Get a deployment record.

        :raise DeploymentNotFound:
            Nothing deployed under the name yet
        """
        try:
            return self.records[name]
        except KeyError:
            raise DeploymentNotFound(f"No deployment found for: {name}") from None

    def save(self, record: DeploymentRecord):
        """Record a deployment.

        The file write happens after the contract creation has been confirmed,
        so a recorded name always points to a live contract.
        """
        assert record.name, "Deployment record needs a name"
        self.records[record.name] = record
        if self.path is None:
            return

        self.path.mkdir(parents=True, exist_ok=True)
        fname = self.path / f"{record.name}.json"
        with FileLock(str(fname) + ".lock"):
            temp = fname.with_suffix(".json.tmp")
            temp.write_text(json.dumps(record.to_json(), indent=2), encoding="utf-8")
            os.replace(temp, fname)

    def names(self) -> list[str]:
        return list(self.records.keys())

    def all(self) -> Iterable[DeploymentRecord]:
        return self.records.values()

    def format_table(self) -> str:
        """Human readable ``name | address`` table of everything deployed."""
        rows = [[r.name, r.address, r.contract or ""] for r in self.records.values()]
        return tabulate(rows, headers=["Deployment", "Address", "Contract"], tablefmt="rounded_outline")
