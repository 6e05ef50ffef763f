from eth_typing import ChecksumAddress

from contracts.base import ZERO_ADDRESS, Contract, Event, external, to_address
from contracts.exceptions import require


class Ownable(Contract):
    """Single-owner access control. The deployer becomes the initial owner."""

    OwnershipTransferred = Event("previousOwner", "newOwner")

    def constructor(self, *args) -> None:
        self._owner = ZERO_ADDRESS
        self._set_owner(self.msg_sender)

    def owner(self) -> ChecksumAddress:
        return self._owner

    def _only_owner(self) -> None:
        require(self.msg_sender == self._owner, "Ownable: caller is not the owner")

    def _set_owner(self, new_owner: ChecksumAddress) -> None:
        previous_owner = self._owner
        self._owner = new_owner
        self.OwnershipTransferred.emit(previous_owner, new_owner)

    @external
    def transferOwnership(self, newOwner) -> None:
        self._only_owner()
        newOwner = to_address(newOwner)
        require(newOwner != ZERO_ADDRESS, "Ownable: new owner is the zero address")
        self._set_owner(newOwner)

    @external
    def renounceOwnership(self) -> None:
        self._only_owner()
        self._set_owner(ZERO_ADDRESS)
