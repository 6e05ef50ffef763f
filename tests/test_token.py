import pytest

from contracts.base import ZERO_ADDRESS
from contracts.exceptions import reverts
from contracts.permit import create_permit_signature
from contracts.token import CustomERC20, ERC20PermitMock
from tests.conftest import MAX_UINT256, permit_data_for, to_wei

TOTAL_SUPPLY = to_wei(20_000_000)


@pytest.fixture()
def token(creator):
    return creator.deploy(ERC20PermitMock, "AToken", "AT", creator.address, TOTAL_SUPPLY)


def test_create_token(token, creator, account1, account2):
    # Account balances
    assert TOTAL_SUPPLY == token.balanceOf(creator)
    assert 0 == token.balanceOf(account1)
    assert TOTAL_SUPPLY == token.totalSupply()

    # Basic properties
    assert "AToken" == token.name()
    assert 18 == token.decimals()
    assert "AT" == token.symbol()

    # Can transfer tokens
    token.transfer(account1, 10000, sender=creator)
    assert 10000 == token.balanceOf(account1)
    assert TOTAL_SUPPLY - 10000 == token.balanceOf(creator)
    token.transfer(account2, 10, sender=account1)
    assert 10000 - 10 == token.balanceOf(account1)
    assert 10 == token.balanceOf(account2)
    token.transfer(token.address, 10, sender=account1)
    assert 10 == token.balanceOf(token.address)

    with reverts("ERC20: transfer amount exceeds balance"):
        token.transfer(account2, 10000, sender=account1)
    with reverts("ERC20: transfer to the zero address"):
        token.transfer(ZERO_ADDRESS, 1, sender=account1)


def test_custom_decimals(creator):
    token = creator.deploy(CustomERC20, "B_Token", "BT", 6, creator.address, 25 * 10**6)
    assert 6 == token.decimals()
    assert 25 * 10**6 == token.balanceOf(creator)


def test_approve_and_transfer_from(token, creator, account1, account2):
    # Approve some value and check allowance
    tx = token.approve(account1, 100, sender=creator)
    assert tx.events == [token.Approval(creator.address, account1.address, 100)]
    assert 100 == token.allowance(creator, account1)
    assert 0 == token.allowance(creator, account2)
    assert 0 == token.allowance(account1, creator)

    # Use transferFrom with allowable value
    tx = token.transferFrom(creator, account2, 50, sender=account1)
    assert tx.events == [
        token.Transfer(creator.address, account2.address, 50),
        token.Approval(creator.address, account1.address, 50),
    ]
    assert 50 == token.balanceOf(account2)
    assert 50 == token.allowance(creator, account1)

    with reverts("ERC20: transfer amount exceeds allowance"):
        token.transferFrom(creator, account2, 51, sender=account1)

    token.increaseAllowance(account1, 10, sender=creator)
    assert 60 == token.allowance(creator, account1)
    token.decreaseAllowance(account1, 60, sender=creator)
    assert 0 == token.allowance(creator, account1)
    with reverts("ERC20: decreased allowance below zero"):
        token.decreaseAllowance(account1, 1, sender=creator)


def test_burn(token, creator, account1):
    tx = token.burn(100, sender=creator)
    assert tx.events == [token.Transfer(creator.address, ZERO_ADDRESS, 100)]
    assert TOTAL_SUPPLY - 100 == token.totalSupply()
    assert TOTAL_SUPPLY - 100 == token.balanceOf(creator)

    with reverts("ERC20: burn amount exceeds balance"):
        token.burn(1, sender=account1)

    with reverts("ERC20: burn amount exceeds allowance"):
        token.burnFrom(creator, 1, sender=account1)
    token.approve(account1, 5, sender=creator)
    token.burnFrom(creator, 5, sender=account1)
    assert TOTAL_SUPPLY - 105 == token.totalSupply()


def test_invalid_amounts_are_rejected_before_execution(token, creator, account1):
    with pytest.raises(ValueError):
        token.transfer(account1, -1, sender=creator)
    with pytest.raises(ValueError):
        token.approve(account1, MAX_UINT256 + 1, sender=creator)
    with pytest.raises(TypeError):
        token.transfer(account1, 1.5, sender=creator)
    assert TOTAL_SUPPLY == token.balanceOf(creator)


def test_permit(chain, token, creator, account1, account2):
    assert 0 == token.nonces(creator)
    deadline = chain.pending_timestamp + 100
    v, r, s = create_permit_signature(token, creator, account1, 1000, 0, deadline)

    # Signature is bound to the spender
    with reverts("ERC20Permit: invalid signature"):
        token.permit(creator, account2, 1000, deadline, v, r, s, sender=account2)

    tx = token.permit(creator, account1, 1000, deadline, v, r, s, sender=account2)
    assert tx.events == [token.Approval(creator.address, account1.address, 1000)]
    assert 1000 == token.allowance(creator, account1)
    assert 1 == token.nonces(creator)

    # Replay is rejected since the nonce moved on
    with reverts("ERC20Permit: invalid signature"):
        token.permit(creator, account1, 1000, deadline, v, r, s, sender=account2)


def test_permit_deadline(chain, token, creator, account1):
    deadline = chain.pending_timestamp
    v, r, s = create_permit_signature(token, creator, account1, 1, 0, deadline)
    chain.mine()
    with reverts("ERC20Permit: expired deadline"):
        token.permit(creator, account1, 1, deadline, v, r, s, sender=creator)
    assert 0 == token.nonces(creator)


def test_permit_signed_by_someone_else(token, creator, account1):
    v, r, s = create_permit_signature(token, account1, account1, 1, 0, MAX_UINT256)
    with reverts("ERC20Permit: invalid signature"):
        token.permit(creator, account1, 1, MAX_UINT256, v, r, s, sender=account1)
    with reverts("ECDSA: invalid signature 'v' value"):
        token.permit(creator, account1, 1, MAX_UINT256, 29, r, s, sender=account1)


def test_domain_separator_depends_on_token(creator):
    token_a = creator.deploy(ERC20PermitMock, "AToken", "AT", creator.address, 1)
    token_b = creator.deploy(ERC20PermitMock, "AToken", "AT", creator.address, 1)
    assert token_a.DOMAIN_SEPARATOR() != token_b.DOMAIN_SEPARATOR()
    assert 32 == len(token_a.DOMAIN_SEPARATOR())


def test_permit_data_selector(token, creator, account1):
    data = permit_data_for(token, creator, account1, 77)
    assert bytes(data[:4]) == bytes.fromhex("d505accf")
