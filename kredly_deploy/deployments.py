"""Deploy contracts under names.

:py:class:`Deployments` deploys compiled contracts, records them in
the :py:class:`kredly_deploy.registry.DeploymentRegistry` and sends
transactions to them.

- Every transaction is confirmed before the next one is sent,
  as later steps need the addresses of earlier ones and
  all transactions come from the same deployer nonce sequence

- Plain deployments are reused when the artifact bytecode and
  constructor arguments have not changed

- Proxy deployments are reused whenever a record exists, upgrading
  an existing proxy is not done here

Example:

.. code-block:: python

    deployments = Deployments(web3, registry, ArtifactStore(Path("artifacts")), deployer=web3.eth.accounts[0])
    result = deployments.deploy("PoolLens", contract="PoolLens")
    lens = deployments.get_contract("PoolLens")

"""

import logging
from dataclasses import dataclass
from typing import Any, NamedTuple, Sequence

from eth_account.signers.local import LocalAccount
from eth_typing import ChecksumAddress, HexStr
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract
from web3.contract.contract import ContractFunction
from web3.types import TxReceipt

from kredly_deploy.artifacts import ArtifactStore
from kredly_deploy.registry import DeploymentRecord, DeploymentRegistry

logger = logging.getLogger(__name__)


class ContractDeploymentFailed(Exception):
    """Did not get successful tx receipt from a deployment."""

    def __init__(self, tx_hash, msg):
        super().__init__(msg)
        self.tx_hash = tx_hash


class TransactionFailed(Exception):
    """A transaction was mined, but reverted."""

    def __init__(self, tx_hash, msg):
        super().__init__(msg)
        self.tx_hash = tx_hash


@dataclass(frozen=True, slots=True)
class ProxyOptions:
    """Deploy the contract behind a transparent upgradeable proxy."""

    #: Proxy admin owner
    owner: str

    #: Initializer called through the proxy constructor
    method_name: str = "initialize"

    #: Initializer arguments
    args: tuple = ()

    #: Reuse an implementation already deployed under this name.
    #:
    #: If not given, the implementation is deployed as ``<name>_Implementation``.
    implementation_name: str | None = None

    #: Artifact name of the proxy contract
    proxy_contract: str = "TransparentUpgradeableProxy"


class DeployResult(NamedTuple):
    name: str
    address: ChecksumAddress

    #: False if an existing deployment was reused
    newly_deployed: bool


def _jsonable(value: Any) -> Any:
    """Convert constructor arguments to something we can store in a deployment file."""
    if isinstance(value, (bytes, bytearray)):
        return HexBytes(value).to_0x_hex()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, int) and not isinstance(value, bool) and abs(value) > 2**53:
        # Keep big mantissas exact in JSON readers
        return str(value)
    return value


class Deployments:
    """Named contract deployments on one network."""

    def __init__(
        self,
        web3: Web3,
        registry: DeploymentRegistry,
        artifacts: ArtifactStore,
        deployer: str | LocalAccount,
        gas: int | None = None,
    ):
        """
        :param deployer:
            Deployer account.

            Either an unlocked node account address or a LocalAccount that signs locally.

        :param gas:
            Fixed gas limit for all transactions.

            If not set, estimate.
        """
        self.web3 = web3
        self.registry = registry
        self.artifacts = artifacts
        self.deployer = deployer
        self.gas = gas

    def __repr__(self):
        return f"<Deployments deployer {self.deployer_address}, {self.registry}>"

    @property
    def deployer_address(self) -> ChecksumAddress:
        if isinstance(self.deployer, LocalAccount):
            return self.deployer.address
        return Web3.to_checksum_address(self.deployer)

    def _tx_params(self) -> dict:
        tx_params = {"from": self.deployer_address}
        if self.gas:
            tx_params["gas"] = self.gas
        if isinstance(self.deployer, LocalAccount):
            tx_params["nonce"] = self.web3.eth.get_transaction_count(self.deployer.address, "pending")
            tx_params["chainId"] = self.web3.eth.chain_id
        return tx_params

    def _send(self, buildable) -> HexBytes:
        """Broadcast a contract constructor or a bound function call."""
        tx_params = self._tx_params()
        if isinstance(self.deployer, LocalAccount):
            tx_data = buildable.build_transaction(tx_params)
            signed_tx = self.deployer.sign_transaction(tx_data)
            return self.web3.eth.send_raw_transaction(signed_tx.raw_transaction)
        else:
            # Delegate signing to the test node
            return buildable.transact(tx_params)

    def _send_deployment(self, contract_class: type[Contract], contract_name: str, args: Sequence) -> TxReceipt:
        tx_hash = self._send(contract_class.constructor(*args))
        receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash)
        if receipt["status"] != 1:
            raise ContractDeploymentFailed(tx_hash, f"Contract {contract_name} deployment failed with args {args}, tx hash is {tx_hash.to_0x_hex()}")
        return receipt

    def deploy(
        self,
        name: str,
        contract: str | None = None,
        args: Sequence = (),
        proxy: ProxyOptions | None = None,
        skip_if_already_deployed: bool = False,
    ) -> DeployResult:
        """Deploy a contract under a name.

        :param name:
            Deployment name, the key in the registry

        :param contract:
            Artifact name. Defaults to ``name``.

        :param args:
            Constructor arguments. Ignored for proxy deployments, use ``proxy.args``.

        :param proxy:
            Deploy behind a transparent proxy

        :param skip_if_already_deployed:
            Reuse an existing deployment even if the artifact or arguments changed

        :raise ContractDeploymentFailed:
            Deployment transaction reverted
        """
        contract = contract or name
        if proxy is not None:
            return self._deploy_proxy(name, contract, proxy)
        return self._deploy_plain(name, contract, list(args), skip_if_already_deployed)

    def _deploy_plain(self, name: str, contract: str, args: list, skip_if_already_deployed: bool) -> DeployResult:
        bytecode = self.artifacts.get_bytecode(contract)
        assert bytecode and bytecode != "0x", f"Contract {contract} has no bytecode, is it abstract or an interface?"
        bytecode_hash = Web3.keccak(hexstr=bytecode).to_0x_hex()
        stored_args = _jsonable(args)

        if self.registry.has(name):
            existing = self.registry.get(name)
            if skip_if_already_deployed or (existing.bytecode_hash == bytecode_hash and existing.args == stored_args):
                logger.info('reusing "%s" at %s', name, existing.address)
                return DeployResult(name, Web3.to_checksum_address(existing.address), False)
            logger.info('"%s" changed since the last deployment, deploying again', name)

        contract_class = self.artifacts.get_contract(self.web3, contract)
        receipt = self._send_deployment(contract_class, contract, args)
        address = Web3.to_checksum_address(receipt["contractAddress"])

        self.registry.save(
            DeploymentRecord(
                name=name,
                address=address,
                abi=self.artifacts.get_abi(contract),
                contract=contract,
                args=stored_args,
                transaction_hash=receipt["transactionHash"].to_0x_hex(),
                bytecode_hash=bytecode_hash,
            )
        )
        logger.info('deploying "%s" (tx: %s)...: deployed at %s with %d gas', name, receipt["transactionHash"].to_0x_hex(), address, receipt["gasUsed"])
        return DeployResult(name, address, True)

    def _deploy_proxy(self, name: str, contract: str, proxy: ProxyOptions) -> DeployResult:
        if self.registry.has(name):
            existing = self.registry.get(name)
            logger.info('reusing "%s" proxy at %s', name, existing.address)
            return DeployResult(name, Web3.to_checksum_address(existing.address), False)

        if proxy.implementation_name:
            implementation = self.deploy(proxy.implementation_name, contract=contract, skip_if_already_deployed=True)
        else:
            implementation = self.deploy(f"{name}_Implementation", contract=contract)

        init_data = self.encode_function_data(contract, proxy.method_name, list(proxy.args))
        proxy_args = [implementation.address, proxy.owner, init_data]
        proxy_class = self.artifacts.get_contract(self.web3, proxy.proxy_contract)
        receipt = self._send_deployment(proxy_class, proxy.proxy_contract, proxy_args)
        address = Web3.to_checksum_address(receipt["contractAddress"])

        self.registry.save(
            DeploymentRecord(
                name=name,
                address=address,
                abi=self.artifacts.get_abi(contract),
                contract=contract,
                args=_jsonable(list(proxy.args)),
                transaction_hash=receipt["transactionHash"].to_0x_hex(),
                implementation=implementation.address,
            )
        )
        logger.info('deploying "%s" proxy (tx: %s)...: deployed at %s, implementation %s', name, receipt["transactionHash"].to_0x_hex(), address, implementation.address)
        return DeployResult(name, address, True)

    def encode_function_data(self, contract: str, method_name: str, args: list) -> HexStr:
        """ABI encode a call, e.g. a proxy initializer payload."""
        contract_class = self.artifacts.get_contract(self.web3, contract)
        return contract_class.encode_abi(method_name, args=args)

    def get(self, name: str) -> DeploymentRecord:
        """Get a deployment record.

        :raise kredly_deploy.registry.DeploymentNotFound:
            Nothing deployed under the name
        """
        return self.registry.get(name)

    def get_contract(self, name: str) -> Contract:
        """Contract instance for a named deployment, using the recorded ABI."""
        record = self.registry.get(name)
        return self.web3.eth.contract(address=Web3.to_checksum_address(record.address), abi=record.abi)

    def get_contract_at(self, contract: str, address: str) -> Contract:
        """Contract instance at an address, using the ABI of a compiled artifact."""
        return self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=self.artifacts.get_abi(contract))

    def transact(self, bound_func: ContractFunction) -> TxReceipt:
        """Send a state changing call from the deployer and wait for it.

        :raise TransactionFailed:
            The transaction reverted
        """
        tx_hash = self._send(bound_func)
        receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash)
        if receipt["status"] != 1:
            raise TransactionFailed(tx_hash, f"Transaction {bound_func.fn_name}{bound_func.args} to {bound_func.address} reverted, tx hash is {tx_hash.to_0x_hex()}")
        logger.info("%s.%s() (tx: %s) used %d gas", bound_func.address, bound_func.fn_name, tx_hash.to_0x_hex(), receipt["gasUsed"])
        return receipt
