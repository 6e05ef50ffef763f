from typing import Dict

from eth_abi import encode
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_keys.exceptions import BadSignature, ValidationError
from eth_typing import ChecksumAddress
from eth_utils import keccak, to_checksum_address
from hexbytes import HexBytes

from contracts.base import (
    UINT256_MAX,
    ZERO_ADDRESS,
    Contract,
    Event,
    as_uint256,
    external,
    to_address,
)
from contracts.exceptions import require

# secp256k1n / 2, upper bound for the `s` value of a non-malleable signature
SECP256K1_HALF_N = 0x7FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF5D576E7357A4501DDFE92F46681B20A0

EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

PERMIT_TYPE = [
    {"name": "owner", "type": "address"},
    {"name": "spender", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
]


class ERC20(Contract):
    """Fungible token with an explicit balance ledger and burnable supply."""

    Transfer = Event("from", "to", "value")
    Approval = Event("owner", "spender", "value")

    def constructor(self, name: str, symbol: str, decimals: int = 18) -> None:
        self._name = name
        self._symbol = symbol
        self._decimals = decimals
        self._total_supply = 0
        self._balances: Dict[ChecksumAddress, int] = dict()
        self._allowances: Dict[ChecksumAddress, Dict[ChecksumAddress, int]] = dict()

    # Views

    def name(self) -> str:
        return self._name

    def symbol(self) -> str:
        return self._symbol

    def decimals(self) -> int:
        return self._decimals

    def totalSupply(self) -> int:
        return self._total_supply

    def balanceOf(self, account) -> int:
        return self._balances.get(to_address(account), 0)

    def allowance(self, owner, spender) -> int:
        return self._allowances.get(to_address(owner), {}).get(to_address(spender), 0)

    # Transactions

    @external
    def transfer(self, recipient, amount: int) -> bool:
        self._transfer(self.msg_sender, to_address(recipient), as_uint256(amount, "amount"))
        return True

    @external
    def approve(self, spender, amount: int) -> bool:
        self._approve(self.msg_sender, to_address(spender), as_uint256(amount, "amount"))
        return True

    @external
    def transferFrom(self, sender, recipient, amount: int) -> bool:
        sender, amount = to_address(sender), as_uint256(amount, "amount")
        self._transfer(sender, to_address(recipient), amount)
        current_allowance = self.allowance(sender, self.msg_sender)
        require(current_allowance >= amount, "ERC20: transfer amount exceeds allowance")
        self._approve(sender, self.msg_sender, current_allowance - amount)
        return True

    @external
    def increaseAllowance(self, spender, added_value: int) -> bool:
        spender = to_address(spender)
        new_allowance = self.allowance(self.msg_sender, spender) + as_uint256(added_value)
        require(new_allowance <= UINT256_MAX, "SafeMath: addition overflow")
        self._approve(self.msg_sender, spender, new_allowance)
        return True

    @external
    def decreaseAllowance(self, spender, subtracted_value: int) -> bool:
        spender = to_address(spender)
        current_allowance = self.allowance(self.msg_sender, spender)
        subtracted_value = as_uint256(subtracted_value)
        require(current_allowance >= subtracted_value, "ERC20: decreased allowance below zero")
        self._approve(self.msg_sender, spender, current_allowance - subtracted_value)
        return True

    @external
    def burn(self, amount: int) -> None:
        self._burn(self.msg_sender, as_uint256(amount, "amount"))

    @external
    def burnFrom(self, account, amount: int) -> None:
        account, amount = to_address(account), as_uint256(amount, "amount")
        current_allowance = self.allowance(account, self.msg_sender)
        require(current_allowance >= amount, "ERC20: burn amount exceeds allowance")
        self._approve(account, self.msg_sender, current_allowance - amount)
        self._burn(account, amount)

    # Internals

    def _transfer(self, sender: ChecksumAddress, recipient: ChecksumAddress, amount: int) -> None:
        require(sender != ZERO_ADDRESS, "ERC20: transfer from the zero address")
        require(recipient != ZERO_ADDRESS, "ERC20: transfer to the zero address")
        sender_balance = self.balanceOf(sender)
        require(sender_balance >= amount, "ERC20: transfer amount exceeds balance")
        self._balances[sender] = sender_balance - amount
        self._balances[recipient] = self.balanceOf(recipient) + amount
        self.Transfer.emit(sender, recipient, amount)

    def _mint(self, account: ChecksumAddress, amount: int) -> None:
        require(account != ZERO_ADDRESS, "ERC20: mint to the zero address")
        require(self._total_supply + amount <= UINT256_MAX, "SafeMath: addition overflow")
        self._total_supply += amount
        self._balances[account] = self.balanceOf(account) + amount
        self.Transfer.emit(ZERO_ADDRESS, account, amount)

    def _burn(self, account: ChecksumAddress, amount: int) -> None:
        require(account != ZERO_ADDRESS, "ERC20: burn from the zero address")
        account_balance = self.balanceOf(account)
        require(account_balance >= amount, "ERC20: burn amount exceeds balance")
        self._balances[account] = account_balance - amount
        self._total_supply -= amount
        self.Transfer.emit(account, ZERO_ADDRESS, amount)

    def _approve(self, owner: ChecksumAddress, spender: ChecksumAddress, amount: int) -> None:
        require(owner != ZERO_ADDRESS, "ERC20: approve from the zero address")
        require(spender != ZERO_ADDRESS, "ERC20: approve to the zero address")
        self._allowances.setdefault(owner, dict())[spender] = amount
        self.Approval.emit(owner, spender, amount)


class ERC20Permit(ERC20):
    """ERC20 with EIP-2612 signed approvals."""

    PERMIT_VERSION = "1"

    def constructor(self, name: str, symbol: str, decimals: int = 18) -> None:
        super().constructor(name, symbol, decimals)
        self._nonces: Dict[ChecksumAddress, int] = dict()

    def nonces(self, owner) -> int:
        return self._nonces.get(to_address(owner), 0)

    def eip712_domain(self) -> Dict:
        return {
            "name": self._name,
            "version": self.PERMIT_VERSION,
            "chainId": self.chain.chain_id,
            "verifyingContract": self.address,
        }

    def DOMAIN_SEPARATOR(self) -> HexBytes:
        domain_type_hash = keccak(
            text="EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
        )
        encoded = encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                domain_type_hash,
                keccak(text=self._name),
                keccak(text=self.PERMIT_VERSION),
                self.chain.chain_id,
                self.address,
            ],
        )
        return HexBytes(keccak(encoded))

    def permit_typed_data(self, owner, spender, value: int, nonce: int, deadline: int) -> Dict:
        return {
            "types": {"EIP712Domain": EIP712_DOMAIN_TYPE, "Permit": PERMIT_TYPE},
            "primaryType": "Permit",
            "domain": self.eip712_domain(),
            "message": {
                "owner": to_address(owner),
                "spender": to_address(spender),
                "value": value,
                "nonce": nonce,
                "deadline": deadline,
            },
        }

    @external
    def permit(self, owner, spender, value: int, deadline: int, v: int, r: bytes, s: bytes):
        owner, spender = to_address(owner), to_address(spender)
        value, deadline = as_uint256(value, "value"), as_uint256(deadline, "deadline")
        require(self.block.timestamp <= deadline, "ERC20Permit: expired deadline")

        nonce = self.nonces(owner)
        signer = self._recover_signer(
            self.permit_typed_data(owner, spender, value, nonce, deadline), v, r, s
        )
        require(signer == owner, "ERC20Permit: invalid signature")

        self._nonces[owner] = nonce + 1
        self._approve(owner, spender, value)

    @staticmethod
    def _recover_signer(typed_data: Dict, v: int, r: bytes, s: bytes) -> ChecksumAddress:
        require(int.from_bytes(bytes(s), "big") <= SECP256K1_HALF_N,
                "ECDSA: invalid signature 's' value")
        require(v in (27, 28), "ECDSA: invalid signature 'v' value")
        signable_message = encode_typed_data(full_message=typed_data)
        try:
            signer = Account.recover_message(signable_message, vrs=(v, bytes(r), bytes(s)))
        except (BadSignature, ValidationError, ValueError):
            return ZERO_ADDRESS
        return to_checksum_address(signer)


class ERC20PermitMock(ERC20Permit):
    """Permit-capable token minting its whole supply to one account at deployment."""

    CONSTRUCTOR_INPUTS = (
        ("name", "string"),
        ("symbol", "string"),
        ("initialAccount", "address"),
        ("initialBalance", "uint256"),
    )

    def constructor(self, name: str, symbol: str, initialAccount, initialBalance: int) -> None:
        super().constructor(name, symbol)
        self._mint(to_address(initialAccount), as_uint256(initialBalance, "initialBalance"))


class CustomERC20(ERC20):
    """Plain token with configurable decimals, used by approve + transferFrom converters."""

    CONSTRUCTOR_INPUTS = (
        ("name", "string"),
        ("symbol", "string"),
        ("decimals", "uint8"),
        ("initialAccount", "address"),
        ("initialBalance", "uint256"),
    )

    def constructor(
        self, name: str, symbol: str, decimals: int, initialAccount, initialBalance: int
    ) -> None:
        super().constructor(name, symbol, decimals)
        self._mint(to_address(initialAccount), as_uint256(initialBalance, "initialBalance"))
