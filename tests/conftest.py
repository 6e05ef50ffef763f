import pytest
from web3 import Web3

from contracts.chain import Chain
from contracts.permit import create_permit_signature, encode_permit_data

# Common constants
GENESIS_TIMESTAMP = 1_600_000_000
ONE_HOUR = 60 * 60
MAX_UINT256 = 2**256 - 1


# Utility functions
def to_wei(amount) -> int:
    return Web3.to_wei(amount, "ether")


def permit_data_for(token, owner, spender, value, deadline=MAX_UINT256, nonce=None):
    """Signs a permit with the owner's key and encodes it as `permit` calldata."""
    if nonce is None:
        nonce = token.nonces(owner.address)
    v, r, s = create_permit_signature(token, owner, spender, value, nonce, deadline)
    return encode_permit_data(owner, spender, value, deadline, v, r, s)


# Fixtures
@pytest.fixture
def chain():
    return Chain(genesis_timestamp=GENESIS_TIMESTAMP)


@pytest.fixture
def accounts(chain):
    return chain.accounts


@pytest.fixture
def creator(accounts):
    return accounts[0]


@pytest.fixture
def account1(accounts):
    return accounts[1]


@pytest.fixture
def account2(accounts):
    return accounts[2]
