from contextlib import contextmanager
from typing import Optional


class ChainError(Exception):
    """Raised when the simulated chain is misused (e.g. traveling back in time)."""


class ContractNotFound(ChainError):
    """Raised when no contract is deployed at the requested address."""


class ContractLogicError(Exception):
    """Raised when a contract call reverts. All state changes of the transaction are undone."""

    def __init__(self, revert_message: Optional[str] = None):
        self.revert_message = revert_message
        super().__init__(revert_message or "Transaction reverted")


def require(condition: bool, message: str) -> None:
    if not condition:
        raise ContractLogicError(message)


@contextmanager
def reverts(expected_message: Optional[str] = None):
    """
    Asserts that the wrapped call reverts, optionally with the given revert message.

        with reverts("Ownable: caller is not the owner"):
            bridge.withdrawLeftOver(sender=stranger)
    """
    try:
        yield
    except ContractLogicError as error:
        if expected_message is not None and error.revert_message != expected_message:
            raise AssertionError(
                f"Expected revert message '{expected_message}' "
                f"but got '{error.revert_message}'"
            ) from error
    else:
        raise AssertionError("Transaction did not revert.")
