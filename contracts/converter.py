import typing
from abc import ABC, abstractmethod

from eth_typing import ChecksumAddress

from contracts.base import UINT256_MAX, Contract
from contracts.exceptions import require
from contracts.permit import decode_permit_data


class FixedRatio(typing.NamedTuple):
    """Conversion multiplier expressed as `ratio / scale`, e.g. 3500 / 1000 for 3.5x."""

    ratio: int
    scale: int

    def convert(self, amount: int) -> int:
        product = amount * self.ratio
        require(product <= UINT256_MAX, "SafeMath: multiplication overflow")
        return product // self.scale


class Authorization(ABC):
    """Strategy used by a converter to pull the input token from the caller."""

    @abstractmethod
    def pull(self, converter: "FixedRatioConverter", token, amount: int, data: bytes) -> None:
        raise NotImplementedError


class AllowanceAuthorization(Authorization):
    """The caller approved the converter beforehand (approve + transferFrom)."""

    def pull(self, converter, token, amount, data=b""):
        token.transferFrom(converter.msg_sender, converter.address, amount)


class PermitAuthorization(Authorization):
    """
    The caller hands over a signed EIP-2612 permit as `permit` calldata.
    The permit must be issued by the caller, to the converter, for exactly `amount`.
    """

    def pull(self, converter, token, amount, data=b""):
        prefix = converter.contract_name
        permit = decode_permit_data(data, contract_name=prefix)
        require(
            permit.owner == converter.msg_sender,
            f"{prefix}::_permit: PERMIT_OWNER_MUST_BE_THE_SENDER",
        )
        require(permit.spender == converter.address, f"{prefix}::_permit: SPENDER_MUST_BE_THIS")
        require(permit.value == amount, f"{prefix}::_permit: PERMIT_AMOUNT_DOES_NOT_MATCH")
        token.permit(*permit)
        token.transferFrom(converter.msg_sender, converter.address, amount)


class FixedRatioConverter(Contract, ABC):
    """
    One-way converter: pulls `amount` of the input token from the caller, burns it
    and pays `amount * ratio / scale` of the output token from its own balance.
    """

    FIXED_RATIO: FixedRatio
    AUTHORIZATION: Authorization

    @abstractmethod
    def _token_in_address(self) -> ChecksumAddress:
        raise NotImplementedError

    @abstractmethod
    def _token_out_address(self) -> ChecksumAddress:
        raise NotImplementedError

    def _convert(self, amount: int, data: bytes = b"") -> int:
        token_in = self._contract_at(self._token_in_address())
        token_out = self._contract_at(self._token_out_address())

        self.AUTHORIZATION.pull(self, token_in, amount, data)
        token_in.burn(amount)

        amount_out = self.FIXED_RATIO.convert(amount)
        token_out.transfer(self.msg_sender, amount_out)
        return amount_out

    def _withdraw_leftover(self, recipient: ChecksumAddress) -> int:
        token_out = self._contract_at(self._token_out_address())
        leftover = token_out.balanceOf(self.address)
        token_out.transfer(recipient, leftover)
        return leftover
