# /src/core/operations.py
# Operations are the unit of work a batch runs. Each kind is a typed model
# that also has an opaque wire form: a 4-byte selector followed by the
# ABI-encoded arguments, exactly as the depot's public surface declares them.
from enum import Enum, IntEnum
from typing import Annotated, ClassVar, Dict, List, Sequence, Type, Union

from eth_abi import encode, decode
from eth_abi.exceptions import DecodingError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from web3 import Web3

from src.abis.depot import DEPOT_ABI
from src.core.errors import OperationDecodeError
from src.core.state import checksum

class FromMode(IntEnum):
    EXTERNAL = 0
    INTERNAL = 1
    EXTERNAL_INTERNAL = 2
    INTERNAL_TOLERANT = 3

class ToMode(IntEnum):
    EXTERNAL = 0
    INTERNAL = 1

class OperationKind(str, Enum):
    FARM = "farm"
    TRANSFER_TOKEN = "transferToken"
    TRANSFER_DEPOSIT = "transferDeposit"
    TRANSFER_DEPOSITS = "transferDeposits"
    PERMIT_TOKEN = "permitToken"
    PERMIT_DEPOSIT = "permitDeposit"
    PERMIT_DEPOSITS = "permitDeposits"
    FLASH_LOAN = "flashLoan"

_FUNCTIONS: Dict[str, dict] = {entry["name"]: entry for entry in DEPOT_ABI if entry["type"] == "function"}

def abi_types(name: str) -> List[str]:
    return [arg["type"] for arg in _FUNCTIONS[name]["inputs"]]

def selector(name: str) -> bytes:
    signature = f"{name}({','.join(abi_types(name))})"
    return bytes(Web3.keccak(text=signature)[:4])

Uint = Annotated[int, Field(ge=0)]
Bytes32 = Annotated[bytes, Field(min_length=32, max_length=32)]
Uint8 = Annotated[int, Field(ge=0, le=255)]
Uint32 = Annotated[int, Field(ge=0, lt=2**32)]

class Operation(BaseModel):
    """Base of every operation. Field order is the ABI argument order."""
    model_config = ConfigDict(frozen=True)

    kind: ClassVar[OperationKind]

    @field_validator("token", "recipient", "sender", "owner", "spender", mode="after", check_fields=False)
    @classmethod
    def _checksum_address(cls, value: str) -> str:
        return checksum(value)

    @field_validator("tokens", mode="after", check_fields=False)
    @classmethod
    def _checksum_addresses(cls, value: List[str]) -> List[str]:
        return [checksum(v) for v in value]

    def arguments(self) -> list:
        return [getattr(self, name) for name in type(self).model_fields]

    def encode(self) -> bytes:
        return selector(self.kind.value) + encode(abi_types(self.kind.value), self.arguments())

class TransferToken(Operation):
    kind: ClassVar[OperationKind] = OperationKind.TRANSFER_TOKEN
    token: str
    recipient: str
    amount: Uint
    from_mode: FromMode = FromMode.EXTERNAL
    to_mode: ToMode = ToMode.EXTERNAL

class TransferDeposit(Operation):
    kind: ClassVar[OperationKind] = OperationKind.TRANSFER_DEPOSIT
    sender: str
    recipient: str
    token: str
    season: Uint32
    amount: Uint

class TransferDeposits(Operation):
    kind: ClassVar[OperationKind] = OperationKind.TRANSFER_DEPOSITS
    sender: str
    recipient: str
    token: str
    seasons: List[Uint32]
    amounts: List[Uint]

class PermitToken(Operation):
    kind: ClassVar[OperationKind] = OperationKind.PERMIT_TOKEN
    owner: str
    spender: str
    token: str
    value: Uint
    deadline: Uint
    v: Uint8
    r: Bytes32
    s: Bytes32

class PermitDeposit(Operation):
    kind: ClassVar[OperationKind] = OperationKind.PERMIT_DEPOSIT
    owner: str
    spender: str
    token: str
    value: Uint
    deadline: Uint
    v: Uint8
    r: Bytes32
    s: Bytes32

class PermitDeposits(Operation):
    kind: ClassVar[OperationKind] = OperationKind.PERMIT_DEPOSITS
    owner: str
    spender: str
    tokens: List[str]
    values: List[Uint]
    deadline: Uint
    v: Uint8
    r: Bytes32
    s: Bytes32

class Farm(Operation):
    """A nested batch. Its steps stay opaque until the batch runs."""
    kind: ClassVar[OperationKind] = OperationKind.FARM
    data: List[bytes]

    @classmethod
    def of(cls, *operations: Union[Operation, bytes]) -> "Farm":
        return cls(data=[op.encode() if isinstance(op, Operation) else bytes(op) for op in operations])

class FlashLoan(Operation):
    kind: ClassVar[OperationKind] = OperationKind.FLASH_LOAN
    tokens: List[str]
    amounts: List[Uint]
    data: bytes

OPERATION_TYPES: Dict[OperationKind, Type[Operation]] = {
    cls.kind: cls
    for cls in (Farm, TransferToken, TransferDeposit, TransferDeposits, PermitToken, PermitDeposit, PermitDeposits, FlashLoan)
}
_BY_SELECTOR: Dict[bytes, Type[Operation]] = {selector(kind.value): cls for kind, cls in OPERATION_TYPES.items()}

def decode_operation(data: bytes) -> Operation:
    """Turns wire bytes back into a typed operation or raises OperationDecodeError."""
    data = bytes(data)
    if len(data) < 4:
        raise OperationDecodeError("Operation: missing selector")
    cls = _BY_SELECTOR.get(data[:4])
    if cls is None:
        raise OperationDecodeError(f"Operation: unknown selector 0x{data[:4].hex()}")
    try:
        decoded = decode(abi_types(cls.kind.value), data[4:])
        return cls.model_validate(dict(zip(cls.model_fields, decoded)))
    except (DecodingError, ValidationError) as e:
        raise OperationDecodeError(f"Operation: malformed {cls.kind.value} arguments") from e

def as_operation(op: Union[Operation, bytes]) -> Operation:
    return op if isinstance(op, Operation) else decode_operation(op)

def as_operations(ops: Sequence[Union[Operation, bytes]]) -> List[Operation]:
    return [as_operation(op) for op in ops]
