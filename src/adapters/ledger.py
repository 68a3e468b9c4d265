# /src/adapters/ledger.py
# In-process implementation of the ledger the depot forwards to: internal
# token balances, seasonal deposits, and signature-based allowances.

from typing import List, Sequence

from eth_abi import encode
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from src.core.errors import Revert
from src.core.logger import get_logger
from src.core.operations import PermitDeposit, PermitDeposits, PermitToken, ToMode
from src.core.state import Deposit, WorldState, checksum
from src.core.tx import CallContext

log = get_logger(__name__)

DOMAIN_TYPEHASH = Web3.keccak(text="EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)")
TOKEN_PERMIT_TYPEHASH = Web3.keccak(text="Permit(address owner,address spender,address token,uint256 value,uint256 nonce,uint256 deadline)")
DEPOSIT_PERMIT_TYPEHASH = Web3.keccak(text="PermitDeposit(address owner,address spender,address token,uint256 value,uint256 nonce,uint256 deadline)")
DEPOSITS_PERMIT_TYPEHASH = Web3.keccak(text="PermitDeposits(address owner,address spender,address[] tokens,uint256[] values,uint256 nonce,uint256 deadline)")

class LedgerError(Revert):
    pass

class InMemoryLedger:
    """
    Reference ledger backed by WorldState.

    Every entry point takes the CallContext of the call made into the ledger,
    so `ctx.caller` is whoever invoked it (normally the depot). Spending on
    behalf of another account consumes the allowance that account granted to
    `ctx.caller`.
    """
    def __init__(self, address: str, chain_id: int = 1):
        self.address = checksum(address)
        self.chain_id = chain_id
        self.domain_separator = Web3.keccak(encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [DOMAIN_TYPEHASH, Web3.keccak(text="Ledger"), Web3.keccak(text="1"), chain_id, self.address],
        ))
        log.info("LEDGER_INITIALIZED", address=self.address, chain_id=chain_id)

    # --- views ---

    def internal_balance(self, state: WorldState, account: str, token: str) -> int:
        return state.internal_balances.get(checksum(account), {}).get(checksum(token), 0)

    def deposit(self, state: WorldState, account: str, token: str, season: int) -> Deposit:
        return state.deposits.get(checksum(account), {}).get(checksum(token), {}).get(season, Deposit())

    def token_allowance(self, state: WorldState, owner: str, spender: str, token: str) -> int:
        return state.token_allowances.get(checksum(owner), {}).get(checksum(spender), {}).get(checksum(token), 0)

    def deposit_allowance(self, state: WorldState, owner: str, spender: str, token: str) -> int:
        return state.deposit_allowances.get(checksum(owner), {}).get(checksum(spender), {}).get(checksum(token), 0)

    def nonce(self, state: WorldState, owner: str) -> int:
        return state.nonces.get(checksum(owner), 0)

    # --- seeding (genesis only, not reachable through the depot) ---

    def credit_internal(self, state: WorldState, account: str, token: str, amount: int):
        """Credits an internal balance and mints the tokens that back it."""
        state.mint(token, self.address, amount)
        self._add_internal(state, account, token, amount)

    def add_deposit(self, state: WorldState, account: str, token: str, season: int, amount: int, bdv: int):
        crates = state.deposits.setdefault(checksum(account), {}).setdefault(checksum(token), {})
        crate = crates.setdefault(season, Deposit())
        crate.amount += amount
        crate.bdv += bdv

    # --- internal balances ---

    def transfer_internal_token_from(self, ctx: CallContext, token: str, sender: str, recipient: str, amount: int, to_mode: int):
        token, sender, recipient = checksum(token), checksum(sender), checksum(recipient)
        if amount < 0:
            raise LedgerError("Token: negative amount")
        if ctx.caller != sender:
            allowed = self.token_allowance(ctx.state, sender, ctx.caller, token)
            if allowed < amount:
                raise LedgerError("Token: insufficient allowance")
            self._set_allowance(ctx.state.token_allowances, sender, ctx.caller, token, allowed - amount)

        if self.internal_balance(ctx.state, sender, token) < amount:
            raise LedgerError("Balance: Insufficient internal balance")
        self._add_internal(ctx.state, sender, token, -amount)

        if to_mode == ToMode.INTERNAL:
            self._add_internal(ctx.state, recipient, token, amount)
        else:
            ctx.state.transfer(token, self.address, recipient, amount)
        log.debug("INTERNAL_TOKEN_TRANSFERRED", token=token, sender=sender, recipient=recipient, amount=amount, to_mode=int(to_mode))

    # --- deposits ---

    def transfer_deposit(self, ctx: CallContext, sender: str, recipient: str, token: str, season: int, amount: int) -> int:
        sender, recipient, token = checksum(sender), checksum(recipient), checksum(token)
        if amount <= 0:
            raise LedgerError("Silo: amount must be greater than 0")
        if ctx.caller != sender:
            self._spend_deposit_allowance(ctx, sender, token, amount)
        return self._move_deposit(ctx.state, sender, recipient, token, season, amount)

    def transfer_deposits(self, ctx: CallContext, sender: str, recipient: str, token: str, seasons: Sequence[int], amounts: Sequence[int]) -> List[int]:
        sender, recipient, token = checksum(sender), checksum(recipient), checksum(token)
        if len(seasons) != len(amounts):
            raise LedgerError("Silo: seasons and amounts are diff lengths")
        if any(amount <= 0 for amount in amounts):
            raise LedgerError("Silo: amount must be greater than 0")
        if ctx.caller != sender:
            self._spend_deposit_allowance(ctx, sender, token, sum(amounts))
        return [self._move_deposit(ctx.state, sender, recipient, token, season, amount) for season, amount in zip(seasons, amounts)]

    def _move_deposit(self, state: WorldState, sender: str, recipient: str, token: str, season: int, amount: int) -> int:
        crates = state.deposits.get(sender, {}).get(token, {})
        crate = crates.get(season)
        if crate is None or crate.amount < amount:
            raise LedgerError("Silo: Crate balance too low.")
        # bdv moves pro rata with the amount
        bdv = crate.bdv * amount // crate.amount
        crate.amount -= amount
        crate.bdv -= bdv
        if crate.amount == 0:
            del crates[season]
        self.add_deposit(state, recipient, token, season, amount, bdv)
        log.debug("DEPOSIT_TRANSFERRED", token=token, sender=sender, recipient=recipient, season=season, amount=amount, bdv=bdv)
        return bdv

    def _spend_deposit_allowance(self, ctx: CallContext, owner: str, token: str, amount: int):
        allowed = self.deposit_allowance(ctx.state, owner, ctx.caller, token)
        if allowed < amount:
            raise LedgerError("Silo: insufficient allowance")
        self._set_allowance(ctx.state.deposit_allowances, owner, ctx.caller, token, allowed - amount)

    # --- permits ---

    def permit_token(self, ctx: CallContext, owner: str, spender: str, token: str, value: int, deadline: int, v: int, r: bytes, s: bytes):
        owner, spender, token = checksum(owner), checksum(spender), checksum(token)
        if ctx.timestamp > deadline:
            raise LedgerError("Token: permit expired deadline")
        struct_hash = token_permit_hash(owner, spender, token, value, self.nonce(ctx.state, owner), deadline)
        self._verify(ctx.state, "Token", owner, struct_hash, v, r, s)
        self._set_allowance(ctx.state.token_allowances, owner, spender, token, value)
        log.info("TOKEN_PERMIT_ACCEPTED", owner=owner, spender=spender, token=token, value=value)

    def permit_deposit(self, ctx: CallContext, owner: str, spender: str, token: str, value: int, deadline: int, v: int, r: bytes, s: bytes):
        owner, spender, token = checksum(owner), checksum(spender), checksum(token)
        if ctx.timestamp > deadline:
            raise LedgerError("Silo: permit expired deadline")
        struct_hash = deposit_permit_hash(owner, spender, token, value, self.nonce(ctx.state, owner), deadline)
        self._verify(ctx.state, "Silo", owner, struct_hash, v, r, s)
        self._set_allowance(ctx.state.deposit_allowances, owner, spender, token, value)
        log.info("DEPOSIT_PERMIT_ACCEPTED", owner=owner, spender=spender, token=token, value=value)

    def permit_deposits(self, ctx: CallContext, owner: str, spender: str, tokens: Sequence[str], values: Sequence[int], deadline: int, v: int, r: bytes, s: bytes):
        owner, spender = checksum(owner), checksum(spender)
        tokens = [checksum(t) for t in tokens]
        if len(tokens) != len(values):
            raise LedgerError("Silo: permit tokens and values are diff lengths")
        if ctx.timestamp > deadline:
            raise LedgerError("Silo: permit expired deadline")
        struct_hash = deposits_permit_hash(owner, spender, tokens, values, self.nonce(ctx.state, owner), deadline)
        self._verify(ctx.state, "Silo", owner, struct_hash, v, r, s)
        for token, value in zip(tokens, values):
            self._set_allowance(ctx.state.deposit_allowances, owner, spender, token, value)
        log.info("DEPOSITS_PERMIT_ACCEPTED", owner=owner, spender=spender, tokens=tokens, values=list(values))

    def permit_digest(self, struct_hash: bytes) -> bytes:
        return bytes(Web3.keccak(b"\x19\x01" + bytes(self.domain_separator) + bytes(struct_hash)))

    def _verify(self, state: WorldState, scope: str, owner: str, struct_hash: bytes, v: int, r: bytes, s: bytes):
        message = encode_defunct(primitive=self.permit_digest(struct_hash))
        try:
            signer = Account.recover_message(message, vrs=(v, r, s))
        except Exception as e:
            raise LedgerError(f"{scope}: permit invalid signature") from e
        if checksum(signer) != owner:
            raise LedgerError(f"{scope}: permit invalid signature")
        # Consuming the nonce makes every signature single-use.
        state.nonces[owner] = self.nonce(state, owner) + 1

    # --- storage helpers ---

    @staticmethod
    def _set_allowance(table: dict, owner: str, spender: str, token: str, value: int):
        table.setdefault(owner, {}).setdefault(spender, {})[token] = value

    @staticmethod
    def _add_internal(state: WorldState, account: str, token: str, delta: int):
        account, token = checksum(account), checksum(token)
        tokens = state.internal_balances.setdefault(account, {})
        tokens[token] = tokens.get(token, 0) + delta

# --- permit hashing and signing ---

def token_permit_hash(owner: str, spender: str, token: str, value: int, nonce: int, deadline: int) -> bytes:
    return bytes(Web3.keccak(encode(
        ["bytes32", "address", "address", "address", "uint256", "uint256", "uint256"],
        [TOKEN_PERMIT_TYPEHASH, owner, spender, token, value, nonce, deadline],
    )))

def deposit_permit_hash(owner: str, spender: str, token: str, value: int, nonce: int, deadline: int) -> bytes:
    return bytes(Web3.keccak(encode(
        ["bytes32", "address", "address", "address", "uint256", "uint256", "uint256"],
        [DEPOSIT_PERMIT_TYPEHASH, owner, spender, token, value, nonce, deadline],
    )))

def deposits_permit_hash(owner: str, spender: str, tokens: Sequence[str], values: Sequence[int], nonce: int, deadline: int) -> bytes:
    return bytes(Web3.keccak(encode(
        ["bytes32", "address", "address", "bytes32", "bytes32", "uint256", "uint256"],
        [
            DEPOSITS_PERMIT_TYPEHASH, owner, spender,
            Web3.keccak(encode(["address[]"], [list(tokens)])),
            Web3.keccak(encode(["uint256[]"], [list(values)])),
            nonce, deadline,
        ],
    )))

def _sign(ledger: InMemoryLedger, private_key, struct_hash: bytes):
    signed = Account.sign_message(encode_defunct(primitive=ledger.permit_digest(struct_hash)), private_key)
    return signed.v, signed.r.to_bytes(32, "big"), signed.s.to_bytes(32, "big")

def sign_token_permit(ledger: InMemoryLedger, state: WorldState, private_key, spender: str, token: str, value: int, deadline: int) -> PermitToken:
    """Signs a token permit for the key's account at its current nonce."""
    owner = Account.from_key(private_key).address
    struct_hash = token_permit_hash(owner, checksum(spender), checksum(token), value, ledger.nonce(state, owner), deadline)
    v, r, s = _sign(ledger, private_key, struct_hash)
    return PermitToken(owner=owner, spender=spender, token=token, value=value, deadline=deadline, v=v, r=r, s=s)

def sign_deposit_permit(ledger: InMemoryLedger, state: WorldState, private_key, spender: str, token: str, value: int, deadline: int) -> PermitDeposit:
    owner = Account.from_key(private_key).address
    struct_hash = deposit_permit_hash(owner, checksum(spender), checksum(token), value, ledger.nonce(state, owner), deadline)
    v, r, s = _sign(ledger, private_key, struct_hash)
    return PermitDeposit(owner=owner, spender=spender, token=token, value=value, deadline=deadline, v=v, r=r, s=s)

def sign_deposits_permit(ledger: InMemoryLedger, state: WorldState, private_key, spender: str, tokens: Sequence[str], values: Sequence[int], deadline: int) -> PermitDeposits:
    owner = Account.from_key(private_key).address
    tokens = [checksum(t) for t in tokens]
    struct_hash = deposits_permit_hash(owner, checksum(spender), tokens, values, ledger.nonce(state, owner), deadline)
    v, r, s = _sign(ledger, private_key, struct_hash)
    return PermitDeposits(owner=owner, spender=spender, tokens=tokens, values=list(values), deadline=deadline, v=v, r=r, s=s)
