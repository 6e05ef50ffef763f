import pytest

from contracts.base import UINT256_MAX, ZERO_ADDRESS
from contracts.converter import FixedRatioConverter
from contracts.exceptions import reverts
from contracts.merge import TokenMerge
from contracts.token import CustomERC20
from tests.conftest import to_wei

RATIO = 35000
TIMEOUT_BLOCKS = 100
FROM_TOKEN_SUPPLY = to_wei(250)
TO_TOKEN_SUPPLY = to_wei(1000)


@pytest.fixture()
def source(accounts):
    return accounts[0]


@pytest.fixture()
def holder(accounts):
    return accounts[1]


@pytest.fixture()
def stranger(accounts):
    return accounts[2]


@pytest.fixture()
def from_token(source):
    return source.deploy(CustomERC20, "From Token", "FROM", 18, source.address, FROM_TOKEN_SUPPLY)


@pytest.fixture()
def to_token(source):
    return source.deploy(CustomERC20, "To Token", "TO", 18, source.address, TO_TOKEN_SUPPLY)


@pytest.fixture()
def token_merge(source, from_token, to_token):
    return source.deploy(TokenMerge, from_token, to_token, source, TIMEOUT_BLOCKS)


@pytest.fixture()
def loaded_merge(token_merge, from_token, to_token, source, holder):
    to_token.approve(token_merge, to_wei(350), sender=source)
    token_merge.loadToToken(to_wei(350), sender=source)
    from_token.transfer(holder, to_wei(100), sender=source)
    return token_merge


def test_constructor(chain, token_merge, from_token, to_token, source):
    assert token_merge.fromToken() == from_token.address
    assert token_merge.toToken() == to_token.address
    assert token_merge.source() == source.address
    assert token_merge.RATIO() == RATIO
    assert token_merge.withdrawTimeout() == chain.height + TIMEOUT_BLOCKS


def test_constructor_timeout_overflow(chain, source, from_token, to_token):
    height = chain.height
    with reverts("SafeMath: addition overflow"):
        source.deploy(TokenMerge, from_token, to_token, source, UINT256_MAX)
    assert chain.height == height


def test_converter_requires_token_hooks(chain):
    class NoTokens(FixedRatioConverter):
        pass

    with pytest.raises(TypeError):
        NoTokens(chain=chain, address=ZERO_ADDRESS)


def test_load_to_token(token_merge, to_token, source, stranger):
    with reverts("TokenMerge::loadToToken: ONLY_SOURCE"):
        token_merge.loadToToken(1, sender=stranger)

    with reverts("ERC20: transfer amount exceeds allowance"):
        token_merge.loadToToken(to_wei(1), sender=source)

    to_token.approve(token_merge, to_wei(10), sender=source)
    tx = token_merge.loadToToken(to_wei(10), sender=source)
    assert tx.events == [
        to_token.Transfer(source.address, token_merge.address, to_wei(10)),
        to_token.Approval(source.address, token_merge.address, 0),
        token_merge.LoadToToken(to_wei(10)),
    ]
    assert to_token.balanceOf(token_merge) == to_wei(10)
    assert to_token.balanceOf(source) == TO_TOKEN_SUPPLY - to_wei(10)


def test_token_merge(loaded_merge, from_token, to_token, holder):
    amount = to_wei(10)
    expected = to_wei(35)

    # nothing approved yet
    with reverts("ERC20: transfer amount exceeds allowance"):
        loaded_merge.tokenMerge(amount, sender=holder)

    from_token.approve(loaded_merge, amount, sender=holder)
    tx = loaded_merge.tokenMerge(amount, sender=holder)
    assert tx.events == [
        from_token.Transfer(holder.address, loaded_merge.address, amount),
        from_token.Approval(holder.address, loaded_merge.address, 0),
        from_token.Transfer(loaded_merge.address, ZERO_ADDRESS, amount),
        to_token.Transfer(loaded_merge.address, holder.address, expected),
        loaded_merge.Merge(holder.address, amount, expected),
    ]

    assert from_token.balanceOf(holder) == to_wei(90)
    assert from_token.balanceOf(loaded_merge) == 0
    assert from_token.totalSupply() == FROM_TOKEN_SUPPLY - amount
    assert to_token.balanceOf(holder) == expected
    assert to_token.balanceOf(loaded_merge) == to_wei(350) - expected


def test_token_merge_without_liquidity(loaded_merge, from_token, to_token, source, holder):
    # 100 tokens would need 350, exactly what was loaded
    from_token.approve(loaded_merge, to_wei(100), sender=holder)
    loaded_merge.tokenMerge(to_wei(100), sender=holder)
    assert to_token.balanceOf(loaded_merge) == 0

    from_token.transfer(holder, 1, sender=source)
    from_token.approve(loaded_merge, 1, sender=holder)
    with reverts("ERC20: transfer amount exceeds balance"):
        loaded_merge.tokenMerge(1, sender=holder)
    assert from_token.balanceOf(holder) == 1
    assert from_token.allowance(holder, loaded_merge) == 1


def test_withdraw_leftover(chain, loaded_merge, to_token, source, stranger):
    with reverts("TokenMerge::withdrawLeftOver: ONLY_SOURCE"):
        loaded_merge.withdrawLeftOver(sender=stranger)

    with reverts("TokenMerge::withdrawLeftOver: TIMEOUT_NOT_REACHED"):
        loaded_merge.withdrawLeftOver(sender=source)

    # the timeout is a block number: the withdrawal must land in that block
    blocks_left = loaded_merge.withdrawTimeout() - chain.height
    chain.mine(blocks_left - 2)
    with reverts("TokenMerge::withdrawLeftOver: TIMEOUT_NOT_REACHED"):
        loaded_merge.withdrawLeftOver(sender=source)
    chain.mine()

    tx = loaded_merge.withdrawLeftOver(sender=source)
    assert tx.block_number == loaded_merge.withdrawTimeout()
    assert tx.events == [to_token.Transfer(loaded_merge.address, source.address, to_wei(350))]
    assert to_token.balanceOf(loaded_merge) == 0
    assert to_token.balanceOf(source) == TO_TOKEN_SUPPLY
