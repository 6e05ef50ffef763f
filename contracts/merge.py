from eth_typing import ChecksumAddress

from contracts.access import Ownable
from contracts.base import UINT256_MAX, Event, as_uint256, external, to_address
from contracts.converter import (
    AllowanceAuthorization,
    FixedRatio,
    FixedRatioConverter,
    PermitAuthorization,
)
from contracts.exceptions import require


class TokenMerge(FixedRatioConverter):
    """
    Merges fromToken into toToken with plain approve + transferFrom.

    The source account loads toToken liquidity and, once `withdrawTimeout`
    (a block number) is reached, takes back whatever was not merged.
    """

    CONSTRUCTOR_INPUTS = (
        ("fromToken", "address"),
        ("toToken", "address"),
        ("source", "address"),
        ("duration", "uint256"),
    )

    FIXED_RATIO = FixedRatio(ratio=35000, scale=10000)
    AUTHORIZATION = AllowanceAuthorization()

    LoadToToken = Event("amount")
    Merge = Event("grantee", "fromAmount", "toAmount")

    def constructor(self, fromToken, toToken, source, duration: int) -> None:
        self._from_token = to_address(fromToken)
        self._to_token = to_address(toToken)
        self._source = to_address(source)
        withdraw_timeout = self.block.number + as_uint256(duration, "duration")
        require(withdraw_timeout <= UINT256_MAX, "SafeMath: addition overflow")
        self._withdraw_timeout = withdraw_timeout

    def _token_in_address(self) -> ChecksumAddress:
        return self._from_token

    def _token_out_address(self) -> ChecksumAddress:
        return self._to_token

    def fromToken(self) -> ChecksumAddress:
        return self._from_token

    def toToken(self) -> ChecksumAddress:
        return self._to_token

    def source(self) -> ChecksumAddress:
        return self._source

    def RATIO(self) -> int:
        return self.FIXED_RATIO.ratio

    def withdrawTimeout(self) -> int:
        return self._withdraw_timeout

    def _only_source(self, method_name: str) -> None:
        require(self.msg_sender == self._source, f"TokenMerge::{method_name}: ONLY_SOURCE")

    @external
    def loadToToken(self, amount: int) -> None:
        self._only_source("loadToToken")
        amount = as_uint256(amount, "amount")
        to_token = self._contract_at(self._to_token)
        to_token.transferFrom(self._source, self.address, amount)
        self.LoadToToken.emit(amount)

    @external
    def tokenMerge(self, amount: int) -> None:
        amount = as_uint256(amount, "amount")
        amount_out = self._convert(amount)
        self.Merge.emit(self.msg_sender, amount, amount_out)

    @external
    def withdrawLeftOver(self) -> None:
        self._only_source("withdrawLeftOver")
        require(
            self.block.number >= self._withdraw_timeout,
            "TokenMerge::withdrawLeftOver: TIMEOUT_NOT_REACHED",
        )
        self._withdraw_leftover(self._source)


class HezMaticMerge(Ownable, FixedRatioConverter):
    """
    Owner-governed bridge variant without a governance constructor argument:
    HEZ is swapped for MATIC with a permit, and the owner (governance, once
    ownership is transferred after deployment) controls the leftover timeout.
    """

    CONSTRUCTOR_INPUTS = (
        ("_hez", "address"),
        ("_matic", "address"),
        ("duration", "uint256"),
    )

    FIXED_RATIO = FixedRatio(ratio=3500, scale=1000)
    AUTHORIZATION = PermitAuthorization()

    HezToMatic = Event("grantee", "hezAmount", "maticAmount")
    NewWithdrawTimeout = Event("newWithdrawTimeout")

    def constructor(self, _hez, _matic, duration: int) -> None:
        Ownable.constructor(self)
        self._hez = to_address(_hez)
        self._matic = to_address(_matic)
        withdraw_timeout = self.block.timestamp + as_uint256(duration, "duration")
        require(withdraw_timeout <= UINT256_MAX, "SafeMath: addition overflow")
        self._withdraw_timeout = withdraw_timeout

    def _token_in_address(self) -> ChecksumAddress:
        return self._hez

    def _token_out_address(self) -> ChecksumAddress:
        return self._matic

    def hez(self) -> ChecksumAddress:
        return self._hez

    def matic(self) -> ChecksumAddress:
        return self._matic

    def SWAP_RATIO(self) -> int:
        return self.FIXED_RATIO.ratio

    def withdrawTimeout(self) -> int:
        return self._withdraw_timeout

    @external
    def hezToMatic(self, amount: int, permitData: bytes) -> None:
        amount = as_uint256(amount, "amount")
        matic_amount = self._convert(amount, permitData)
        self.HezToMatic.emit(self.msg_sender, amount, matic_amount)

    @external
    def withdrawLeftOver(self) -> None:
        self._only_owner()
        require(
            self.block.timestamp >= self._withdraw_timeout,
            "HezMaticMerge::withdrawLeftOver: TIMEOUT_NOT_REACHED",
        )
        self._withdraw_leftover(self.owner())

    @external
    def setWithdrawTimeout(self, newWithdrawTimeout: int) -> None:
        self._only_owner()
        newWithdrawTimeout = as_uint256(newWithdrawTimeout, "newWithdrawTimeout")
        require(
            newWithdrawTimeout > self._withdraw_timeout,
            "HezMaticMerge::setWithdrawTimeout: NEW_TIMEOUT_MUST_BE_HIGHER",
        )
        self._withdraw_timeout = newWithdrawTimeout
        self.NewWithdrawTimeout.emit(newWithdrawTimeout)
