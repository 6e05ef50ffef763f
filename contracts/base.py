import copy
import functools
import typing
from typing import Any, Dict, Tuple

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
UINT256_MAX = 2**256 - 1


def to_address(value: Any) -> ChecksumAddress:
    """Accepts accounts, contract instances or raw addresses and returns a checksum address."""
    address = getattr(value, "address", value)
    return to_checksum_address(address)


def as_uint256(value: int, name: str = "value") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"'{name}' must be an integer, got {type(value).__name__}")
    if not 0 <= value <= UINT256_MAX:
        raise ValueError(f"'{name}' is out of uint256 range: {value}")
    return value


class ContractLog:
    """A single event emitted by a contract during a transaction."""

    def __init__(self, contract_address: ChecksumAddress, event_name: str, event_arguments: Dict):
        self.contract_address = contract_address
        self.event_name = event_name
        self.event_arguments = event_arguments

    def __getattr__(self, item):
        try:
            return self.__dict__["event_arguments"][item]
        except KeyError:
            event_name = self.__dict__.get("event_name", "ContractLog")
            raise AttributeError(f"{event_name} has no argument '{item}'")

    def __eq__(self, other):
        if not isinstance(other, ContractLog):
            return NotImplemented
        return (
            self.contract_address == other.contract_address
            and self.event_name == other.event_name
            and self.event_arguments == other.event_arguments
        )

    def __repr__(self):
        pretty_args = ", ".join(f"{k}={v}" for k, v in self.event_arguments.items())
        return f"<{self.event_name} {pretty_args}>"


class Event:
    """
    Declares a contract event. Accessed through an instance it can be emitted from
    contract code or called to build the expected log in tests:

        self.Bridge.emit(grantee, amount)
        assert receipt.events[-1] == bridge.Bridge(user.address, amount)
    """

    def __init__(self, *arg_names: str):
        self.arg_names = arg_names
        self.name = None

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, instance, owner):
        if instance is None:
            return self
        return BoundEvent(event=self, contract=instance)


class BoundEvent(typing.NamedTuple):
    event: Event
    contract: "Contract"

    def __call__(self, *args, **kwargs) -> ContractLog:
        arg_names = self.event.arg_names
        if len(args) + len(kwargs) != len(arg_names):
            raise TypeError(
                f"{self.event.name} expects {len(arg_names)} argument(s), "
                f"got {len(args) + len(kwargs)}"
            )
        arguments = dict(zip(arg_names, args))
        for name, value in kwargs.items():
            if name not in arg_names or name in arguments:
                raise TypeError(f"Unexpected argument '{name}' for {self.event.name}")
            arguments[name] = value
        ordered_arguments = {name: arguments[name] for name in arg_names}
        return ContractLog(self.contract.address, self.event.name, ordered_arguments)

    def emit(self, *args, **kwargs) -> None:
        self.contract.chain.record_log(self(*args, **kwargs))


def external(method):
    """
    Marks a state-mutating contract method. Called from outside the chain it requires
    a ``sender`` and runs as a transaction; called by another contract it runs in the
    ongoing transaction with the calling contract as ``msg_sender``.
    """

    @functools.wraps(method)
    def wrapper(self, *args, sender=None):
        return self.chain.execute(self, method, args, sender=sender)

    wrapper.is_external = True
    return wrapper


class Contract:
    """Base class for simulated contracts. Every instance attribute except the
    chain handle and the address is contract storage."""

    CONSTRUCTOR_INPUTS: Tuple[Tuple[str, str], ...] = ()

    _NON_STORAGE = frozenset({"chain", "address"})

    def __init__(self, chain, address: ChecksumAddress):
        self.chain = chain
        self.address = address

    def constructor(self, *args) -> None:
        """Runs once at deployment, inside the deployment transaction."""

    @property
    def contract_name(self) -> str:
        return type(self).__name__

    @property
    def msg_sender(self) -> ChecksumAddress:
        return self.chain.msg_sender

    @property
    def block(self):
        return self.chain.execution_block

    def _contract_at(self, address: ChecksumAddress) -> "Contract":
        return self.chain.get_contract(address)

    def get_storage(self) -> Dict[str, Any]:
        storage = {k: v for k, v in vars(self).items() if k not in self._NON_STORAGE}
        return copy.deepcopy(storage)

    def set_storage(self, storage: Dict[str, Any]) -> None:
        for name in [k for k in vars(self) if k not in self._NON_STORAGE]:
            delattr(self, name)
        for name, value in copy.deepcopy(storage).items():
            setattr(self, name, value)

    def __repr__(self):
        return f"<{self.contract_name} {self.address}>"
