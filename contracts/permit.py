"""
EIP-2612 permit payloads.

Converters receive the permit as the raw calldata of a `permit` call on the input
token, exactly as produced off-chain by `encode_permit_data`.
"""

import typing

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_typing import ChecksumAddress
from eth_utils import function_signature_to_4byte_selector, to_checksum_address
from hexbytes import HexBytes

from contracts.exceptions import ContractLogicError

PERMIT_SIGNATURE = "permit(address,address,uint256,uint256,uint8,bytes32,bytes32)"
PERMIT_SELECTOR = function_signature_to_4byte_selector(PERMIT_SIGNATURE)
PERMIT_ARG_TYPES = ["address", "address", "uint256", "uint256", "uint8", "bytes32", "bytes32"]


class PermitData(typing.NamedTuple):
    owner: ChecksumAddress
    spender: ChecksumAddress
    value: int
    deadline: int
    v: int
    r: bytes
    s: bytes


def create_permit_signature(token, owner, spender, value: int, nonce: int, deadline: int):
    """Signs an EIP-2612 permit for `token` with the owner's key. Returns (v, r, s)."""
    typed_data = token.permit_typed_data(
        owner=owner.address,
        spender=getattr(spender, "address", spender),
        value=value,
        nonce=nonce,
        deadline=deadline,
    )
    signed = owner.sign_typed_data(typed_data)
    r = signed.r.to_bytes(32, "big")
    s = signed.s.to_bytes(32, "big")
    return signed.v, r, s


def encode_permit_data(owner, spender, value: int, deadline: int, v: int, r, s) -> HexBytes:
    arguments = [
        getattr(owner, "address", owner),
        getattr(spender, "address", spender),
        value,
        deadline,
        v,
        bytes(HexBytes(r)),
        bytes(HexBytes(s)),
    ]
    return HexBytes(PERMIT_SELECTOR + encode(PERMIT_ARG_TYPES, arguments))


def decode_permit_data(data: bytes, contract_name: str) -> PermitData:
    data = bytes(HexBytes(data))
    if data[:4] != PERMIT_SELECTOR:
        raise ContractLogicError(f"{contract_name}::_permit: NOT_VALID_CALL")
    try:
        owner, spender, value, deadline, v, r, s = decode(PERMIT_ARG_TYPES, data[4:])
    except DecodingError:
        raise ContractLogicError(f"{contract_name}::_permit: NOT_VALID_CALL")
    return PermitData(
        owner=to_checksum_address(owner),
        spender=to_checksum_address(spender),
        value=value,
        deadline=deadline,
        v=v,
        r=r,
        s=s,
    )
