"""Shared fixtures.

Compiled Kredly contracts are not part of this repository,
so orchestrator tests run against :py:class:`FakeDeployments`: it records
deployments in a real registry and keeps just enough contract state
to answer the view calls the deployment steps make.
"""

import itertools

import pytest
from web3 import EthereumTesterProvider, Web3

from kredly_deploy.accounts import NamedAccounts
from kredly_deploy.config import load_deployment_config
from kredly_deploy.deployments import DeployResult, TransactionFailed
from kredly_deploy.orchestrator import DeploymentContext
from kredly_deploy.registry import DeploymentRecord, DeploymentRegistry
from kredly_deploy.units import ZERO_ADDRESS


class FakeFunction:
    """A bound contract function call."""

    def __init__(self, contract: "FakeContract", fn_name: str, args: tuple):
        self.contract = contract
        self.fn_name = fn_name
        self.args = args
        self.address = contract.address

    def call(self):
        view = self.contract.views[self.fn_name]
        if callable(view):
            return view(*self.args)
        return view


class FakeFunctions:
    def __init__(self, contract: "FakeContract"):
        self._contract = contract

    def __getattr__(self, fn_name: str):
        return lambda *args: FakeFunction(self._contract, fn_name, args)


class FakeContract:
    def __init__(self, name: str, address: str, views: dict):
        self.name = name
        self.address = address
        self.views = views
        self.functions = FakeFunctions(self)

    def __repr__(self):
        return f"<FakeContract {self.name} at {self.address}>"


class FakeDeployments:
    """Records deployments and transactions instead of sending them."""

    def __init__(self, deployer: str, registry: DeploymentRegistry | None = None):
        self.registry = registry if registry is not None else DeploymentRegistry()
        self.deployer_address = deployer
        self.contracts: dict[str, FakeContract] = {}
        self._counter = itertools.count(0x1000)

        #: Names deployed, in order
        self.deployed: list[str] = []

        #: (contract name, function name, args) of sent transactions, in order
        self.transactions: list[tuple[str, str, tuple]] = []

        #: (contract, method, args) of encoded initializer calls
        self.encoded: list[tuple[str, str, list]] = []

        #: Function name -> predicate on args, matching calls revert
        self.reverts: dict = {}

        # On-chain state the steps read back
        self.pools: set[str] = set()
        self.markets: set[str] = set()
        self.distributors: set[str] = set()

    def deploy(self, name, contract=None, args=(), proxy=None, skip_if_already_deployed=False) -> DeployResult:
        if self.registry.has(name):
            return DeployResult(name, self.registry.get(name).address, False)

        contract = contract or name
        if proxy is not None and proxy.implementation_name:
            self.deploy(proxy.implementation_name, contract=contract, skip_if_already_deployed=True)

        address = Web3.to_checksum_address(f"0x{next(self._counter):040x}")
        stored_args = list(proxy.args) if proxy is not None else list(args)
        self.registry.save(DeploymentRecord(name=name, address=address, contract=contract, args=stored_args))
        self.deployed.append(name)
        return DeployResult(name, address, True)

    def encode_function_data(self, contract, method_name, args):
        self.encoded.append((contract, method_name, args))
        return f"{contract}.{method_name}"

    def _contract_at(self, name: str, address: str) -> FakeContract:
        if address not in self.contracts:
            views = {
                "decimals": 18,
                "getPoolByComptroller": self._pool_by_comptroller,
                "getAllMarkets": lambda: sorted(self.markets),
                "getRewardDistributors": lambda: sorted(self.distributors),
                "poolRegistry": ZERO_ADDRESS,
                "protocolShareReserve": ZERO_ADDRESS,
                "reduceReservesBlockDelta": 0,
            }
            self.contracts[address] = FakeContract(name, address, views)
        return self.contracts[address]

    def _pool_by_comptroller(self, comptroller):
        if comptroller in self.pools:
            return ("pool", self.deployer_address, comptroller, 1, 1)
        return ("", ZERO_ADDRESS, ZERO_ADDRESS, 0, 0)

    def get_contract(self, name: str) -> FakeContract:
        record = self.registry.get(name)
        return self._contract_at(record.contract or name, record.address)

    def get_contract_at(self, contract: str, address: str) -> FakeContract:
        return self._contract_at(contract, address)

    def transact(self, bound: FakeFunction):
        should_revert = self.reverts.get(bound.fn_name)
        if should_revert and should_revert(bound.args):
            raise TransactionFailed(None, f"Transaction {bound.fn_name}{bound.args} to {bound.address} reverted")

        self.transactions.append((bound.contract.name, bound.fn_name, bound.args))

        views = bound.contract.views
        match bound.fn_name:
            case "addPool":
                self.pools.add(bound.args[1])
            case "addMarket":
                self.markets.add(bound.args[0][0])
            case "addRewardsDistributor":
                self.distributors.add(bound.args[0])
            case "setPoolRegistry":
                views["poolRegistry"] = bound.args[0]
            case "setProtocolShareReserve":
                views["protocolShareReserve"] = bound.args[0]
            case "setReduceReservesBlockDelta":
                views["reduceReservesBlockDelta"] = bound.args[0]

    def calls(self, fn_name: str) -> list[tuple]:
        """Arguments of sent transactions calling a function."""
        return [args for _, name, args in self.transactions if name == fn_name]


@pytest.fixture
def tester_provider():
    return EthereumTesterProvider()


@pytest.fixture
def web3(tester_provider):
    """Set up a local unit testing blockchain."""
    return Web3(tester_provider)


@pytest.fixture()
def deployer(web3) -> str:
    return web3.eth.accounts[0]


@pytest.fixture()
def accounts(web3) -> NamedAccounts:
    return NamedAccounts(web3)


@pytest.fixture()
def fake_deployments(deployer) -> FakeDeployments:
    return FakeDeployments(deployer)


@pytest.fixture()
def hardhat_config():
    return load_deployment_config("hardhat")


@pytest.fixture()
def local_context(hardhat_config, fake_deployments, accounts) -> DeploymentContext:
    """Deployment context for the local network, backed by fake deployments."""
    return DeploymentContext(config=hardhat_config, deployments=fake_deployments, accounts=accounts, live=False)
