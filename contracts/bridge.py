from eth_typing import ChecksumAddress

from contracts.access import Ownable
from contracts.base import UINT256_MAX, Event, as_uint256, external, to_address
from contracts.converter import FixedRatio, FixedRatioConverter, PermitAuthorization
from contracts.exceptions import require


class TokenBridge(Ownable, FixedRatioConverter):
    """
    Converts tokenA into tokenB at a fixed 3.5x ratio using a signed permit.

    tokenB liquidity is sent to the bridge directly. Once `withdrawTimeout` has passed
    the owner may reclaim whatever tokenB is left. Governance may only ever push the
    timeout further into the future.
    """

    CONSTRUCTOR_INPUTS = (
        ("tokenA", "address"),
        ("tokenB", "address"),
        ("governance", "address"),
        ("duration", "uint256"),
    )

    FIXED_RATIO = FixedRatio(ratio=3500, scale=1000)
    AUTHORIZATION = PermitAuthorization()

    Bridge = Event("grantee", "amount")
    TimeoutIncreased = Event("newTimeout")

    def constructor(self, tokenA, tokenB, governance, duration: int) -> None:
        Ownable.constructor(self)
        self._token_a = to_address(tokenA)
        self._token_b = to_address(tokenB)
        self._governance = to_address(governance)
        withdraw_timeout = self.block.timestamp + as_uint256(duration, "duration")
        require(withdraw_timeout <= UINT256_MAX, "SafeMath: addition overflow")
        self._withdraw_timeout = withdraw_timeout

    def _token_in_address(self) -> ChecksumAddress:
        return self._token_a

    def _token_out_address(self) -> ChecksumAddress:
        return self._token_b

    # Views

    def tokenA(self) -> ChecksumAddress:
        return self._token_a

    def tokenB(self) -> ChecksumAddress:
        return self._token_b

    # alias of tokenB
    manoloToken = tokenB

    def governance(self) -> ChecksumAddress:
        return self._governance

    def BRIDGE_RATIO(self) -> int:
        return self.FIXED_RATIO.ratio

    def withdrawTimeout(self) -> int:
        return self._withdraw_timeout

    # Transactions

    @external
    def bridge(self, amount: int, permitData: bytes) -> None:
        amount = as_uint256(amount, "amount")
        self._convert(amount, permitData)
        self.Bridge.emit(self.msg_sender, amount)

    @external
    def withdrawLeftOver(self) -> None:
        self._only_owner()
        require(
            self.block.timestamp >= self._withdraw_timeout,
            "TokenBridge::withdrawLeftOver: TIMEOUT_NOT_REACHED",
        )
        self._withdraw_leftover(self.owner())

    @external
    def setWithdrawTimeout(self, newWithdrawTimeout: int) -> None:
        require(
            self.msg_sender == self._governance,
            "TokenBridge::setWithdrawTimeout: ONLY_GOVERNANCE_ALLOWED",
        )
        newWithdrawTimeout = as_uint256(newWithdrawTimeout, "newWithdrawTimeout")
        require(
            newWithdrawTimeout > self._withdraw_timeout,
            "TokenBridge::setWithdrawTimeout: NEW_TIMEOUT_MUST_BE_HIGHER",
        )
        self._withdraw_timeout = newWithdrawTimeout
        self.TimeoutIncreased.emit(newWithdrawTimeout)
