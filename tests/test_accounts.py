"""Named accounts on a test chain."""

import pytest
from eth_account import Account

from kredly_deploy.accounts import NamedAccounts, UnknownAccount


def test_indices(web3):
    accounts = NamedAccounts(web3)
    assert accounts.deployer == web3.eth.accounts[0]
    assert accounts.get_address("acc2") == web3.eth.accounts[2]
    assert accounts.get_address("SwapRouter") == web3.eth.accounts[5]


def test_unknown_role(web3):
    with pytest.raises(UnknownAccount):
        NamedAccounts(web3).get_address("treasury")


def test_index_out_of_range(web3):
    accounts = NamedAccounts(web3, indices={"deployer": 0, "far": 1000})
    with pytest.raises(UnknownAccount):
        accounts.get_address("far")


def test_signer_only_has_deployer(web3):
    signer = Account.create()
    accounts = NamedAccounts(web3, signer=signer)
    assert accounts.deployer == signer.address
    with pytest.raises(UnknownAccount):
        accounts.get_address("acc1")

