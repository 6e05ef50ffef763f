import functools
import time
import typing
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Type

import rlp
from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_typing import ChecksumAddress
from eth_utils import keccak, to_canonical_address, to_checksum_address
from hexbytes import HexBytes

from contracts.base import Contract, ContractLog, to_address
from contracts.exceptions import ChainError, ContractNotFound

DEFAULT_CHAIN_ID = 31337
DEFAULT_BLOCK_TIME = 1  # seconds between automined blocks
DEFAULT_NUMBER_OF_ACCOUNTS = 10
DEV_MNEMONIC = "test test test test test test test test test test test junk"
DERIVATION_PATH = "m/44'/60'/0'/0/{}"

Account.enable_unaudited_hdwallet_features()


class Block(typing.NamedTuple):
    number: int
    timestamp: int
    hash: HexBytes


class Receipt(typing.NamedTuple):
    txn_hash: HexBytes
    sender: ChecksumAddress
    block_number: int
    timestamp: int
    events: List[ContractLog]
    return_value: Any = None
    contract_address: Optional[ChecksumAddress] = None


class Frame(typing.NamedTuple):
    contract: Optional[Contract]
    msg_sender: ChecksumAddress


@functools.lru_cache(maxsize=None)
def _derive_accounts(mnemonic: str, count: int) -> typing.Tuple[LocalAccount, ...]:
    return tuple(
        Account.from_mnemonic(mnemonic, account_path=DERIVATION_PATH.format(index))
        for index in range(count)
    )


def contract_address_for(sender: ChecksumAddress, nonce: int) -> ChecksumAddress:
    """Address of a contract created by `sender` at `nonce` (CREATE semantics)."""
    encoded = rlp.encode([to_canonical_address(sender), nonce])
    return to_checksum_address(keccak(encoded)[12:])


class TestAccount:
    """A funded development account bound to a simulated chain."""

    __test__ = False  # not a pytest test class

    def __init__(self, chain: "Chain", local_account: LocalAccount):
        self.chain = chain
        self._local_account = local_account

    @property
    def address(self) -> ChecksumAddress:
        return self._local_account.address

    @property
    def private_key(self) -> HexBytes:
        return HexBytes(self._local_account.key)

    def deploy(self, container: Type[Contract], *args) -> Contract:
        return self.chain.deploy(container, *args, sender=self)

    def sign_typed_data(self, full_message: Dict):
        return self._local_account.sign_typed_data(full_message=full_message)

    def __repr__(self):
        return f"<TestAccount {self.address}>"


class Chain:
    """
    In-memory chain executing simulated contracts one transaction at a time.

    Every transaction is mined into its own block. A failing transaction restores
    the storage of every contract (and the contract registry) to its prior state.
    """

    def __init__(
        self,
        chain_id: int = DEFAULT_CHAIN_ID,
        genesis_timestamp: Optional[int] = None,
        block_time: int = DEFAULT_BLOCK_TIME,
        mnemonic: str = DEV_MNEMONIC,
        number_of_accounts: int = DEFAULT_NUMBER_OF_ACCOUNTS,
    ):
        if block_time < 1:
            raise ChainError("Block time must be at least one second.")
        self.chain_id = chain_id
        self.block_time = block_time
        if genesis_timestamp is None:
            genesis_timestamp = int(time.time())
        genesis_hash = HexBytes(keccak(chain_id.to_bytes(32, "big")))
        self.blocks: List[Block] = [Block(0, genesis_timestamp, genesis_hash)]

        self._pending_timestamp: Optional[int] = None
        self._contracts: Dict[ChecksumAddress, Contract] = dict()
        self._nonces: Dict[ChecksumAddress, int] = defaultdict(int)
        self._frames: List[Frame] = list()
        self._pending_block: Optional[Block] = None
        self._logs: Optional[List[ContractLog]] = None
        self._snapshots: List[Dict[str, Any]] = list()

        self.accounts = [
            TestAccount(self, local_account)
            for local_account in _derive_accounts(mnemonic, number_of_accounts)
        ]

    #
    # Blocks and time
    #

    @property
    def height(self) -> int:
        return self.blocks[-1].number

    @property
    def latest_block(self) -> Block:
        return self.blocks[-1]

    @property
    def pending_timestamp(self) -> int:
        if self._pending_timestamp is not None:
            return self._pending_timestamp
        return self.latest_block.timestamp + self.block_time

    @pending_timestamp.setter
    def pending_timestamp(self, timestamp: int) -> None:
        if timestamp <= self.latest_block.timestamp:
            raise ChainError(
                f"Pending timestamp {timestamp} must be greater than "
                f"the latest block timestamp {self.latest_block.timestamp}."
            )
        self._pending_timestamp = timestamp

    def increase_time(self, seconds: int) -> int:
        """Moves the timestamp of the next block forward and returns it."""
        if seconds < 0:
            raise ChainError("Cannot travel back in time.")
        self.pending_timestamp = self.pending_timestamp + seconds
        return self.pending_timestamp

    def _build_next_block(self) -> Block:
        parent = self.latest_block
        number = parent.number + 1
        block_hash = HexBytes(keccak(parent.hash + number.to_bytes(32, "big")))
        return Block(number, self.pending_timestamp, block_hash)

    def _append_block(self, block: Block) -> None:
        self.blocks.append(block)
        self._pending_timestamp = None

    def mine(self, num_blocks: int = 1, timestamp: Optional[int] = None) -> Block:
        if num_blocks < 1:
            raise ChainError("Must mine at least one block.")
        if self._frames:
            raise ChainError("Cannot mine during a transaction.")
        if timestamp is not None:
            self.pending_timestamp = timestamp
        for _ in range(num_blocks):
            self._append_block(self._build_next_block())
        return self.latest_block

    @property
    def execution_block(self) -> Block:
        """The block a call executes in: the block being mined, or the next one for reads."""
        if self._pending_block is not None:
            return self._pending_block
        return self._build_next_block()

    #
    # Contracts
    #

    def get_contract(self, address: Any) -> Contract:
        address = to_address(address)
        try:
            return self._contracts[address]
        except KeyError:
            raise ContractNotFound(f"No contract deployed at {address}")

    def is_contract(self, address: Any) -> bool:
        return to_address(address) in self._contracts

    def get_nonce(self, address: Any) -> int:
        return self._nonces[to_address(address)]

    def deploy(self, container: Type[Contract], *args, sender: Any) -> Contract:
        sender_address = to_address(sender)
        address = contract_address_for(sender_address, self._nonces[sender_address])
        if address in self._contracts:
            raise ChainError(f"Contract address collision at {address}")

        def create():
            instance = container(chain=self, address=address)
            self._contracts[address] = instance
            self._run_frame(Frame(contract=instance, msg_sender=sender_address),
                            instance.constructor, args)
            return instance

        receipt = self._transact(sender_address, create, contract_address=address)
        return receipt.return_value

    #
    # Execution
    #

    @property
    def msg_sender(self) -> ChecksumAddress:
        if not self._frames:
            raise ChainError("msg_sender is only available during contract execution.")
        return self._frames[-1].msg_sender

    def record_log(self, log: ContractLog) -> None:
        if self._logs is None:
            raise ChainError("Events can only be emitted during a transaction.")
        self._logs.append(log)

    def execute(self, contract: Contract, method: Callable, args: tuple, sender: Any = None):
        if self._frames:
            if sender is not None:
                raise ChainError("Contract-to-contract calls cannot specify a sender.")
            caller = self._frames[-1].contract.address
            return self._run_frame(Frame(contract, caller), method, (contract, *args))

        if sender is None:
            raise ChainError(f"{contract.contract_name}.{method.__name__} requires a sender.")
        sender_address = to_address(sender)
        return self._transact(
            sender_address,
            lambda: self._run_frame(Frame(contract, sender_address), method, (contract, *args)),
        )

    def _run_frame(self, frame: Frame, function: Callable, args: tuple):
        self._frames.append(frame)
        try:
            return function(*args)
        finally:
            self._frames.pop()

    def _transact(
        self,
        sender: ChecksumAddress,
        run: Callable,
        contract_address: Optional[ChecksumAddress] = None,
    ) -> Receipt:
        state = self._capture_state()
        nonce = self._nonces[sender]
        self._pending_block = self._build_next_block()
        self._logs = list()
        try:
            return_value = run()
        except BaseException:
            self._restore_state(state)
            raise
        finally:
            block, logs = self._pending_block, self._logs
            self._pending_block, self._logs = None, None

        self._nonces[sender] = nonce + 1
        self._append_block(block)
        txn_hash = HexBytes(
            keccak(to_canonical_address(sender) + nonce.to_bytes(32, "big") + block.hash)
        )
        return Receipt(
            txn_hash=txn_hash,
            sender=sender,
            block_number=block.number,
            timestamp=block.timestamp,
            events=logs,
            return_value=return_value,
            contract_address=contract_address,
        )

    #
    # State
    #

    def _capture_state(self) -> Dict[str, Any]:
        return {
            "contracts": dict(self._contracts),
            "storage": {
                address: contract.get_storage() for address, contract in self._contracts.items()
            },
        }

    def _restore_state(self, state: Dict[str, Any]) -> None:
        self._contracts = dict(state["contracts"])
        for address, storage in state["storage"].items():
            self._contracts[address].set_storage(storage)

    def snapshot(self) -> int:
        """Records the whole chain state and returns an id usable with `restore`."""
        if self._frames:
            raise ChainError("Cannot snapshot during a transaction.")
        self._snapshots.append(
            {
                "state": self._capture_state(),
                "blocks": list(self.blocks),
                "nonces": dict(self._nonces),
                "pending_timestamp": self._pending_timestamp,
            }
        )
        return len(self._snapshots) - 1

    def restore(self, snapshot_id: Optional[int] = None) -> None:
        if not self._snapshots:
            raise ChainError("No snapshot to restore.")
        if snapshot_id is None:
            snapshot_id = len(self._snapshots) - 1
        if not 0 <= snapshot_id < len(self._snapshots):
            raise ChainError(f"Unknown snapshot id {snapshot_id}")

        snapshot = self._snapshots[snapshot_id]
        del self._snapshots[snapshot_id:]
        self._restore_state(snapshot["state"])
        self.blocks = list(snapshot["blocks"])
        self._nonces = defaultdict(int, snapshot["nonces"])
        self._pending_timestamp = snapshot["pending_timestamp"]
