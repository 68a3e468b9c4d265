# /src/abis/depot.py
def _fn(name, inputs, outputs=(), mutability="nonpayable"):
    return {
        "inputs": [{"internalType": t, "name": n, "type": t} for t, n in inputs],
        "name": name,
        "outputs": [{"internalType": t, "name": n, "type": t} for t, n in outputs],
        "stateMutability": mutability,
        "type": "function",
    }

_PERMIT_SIGNATURE = [("uint256", "deadline"), ("uint8", "v"), ("bytes32", "r"), ("bytes32", "s")]

# Public surface of the depot. Argument order here is the wire order of the
# matching Operation models.
DEPOT_ABI = [
    _fn("farm", [("bytes[]", "data")], [("bytes[]", "results")], "payable"),
    _fn("transferToken", [("address", "token"), ("address", "recipient"), ("uint256", "amount"), ("uint8", "fromMode"), ("uint8", "toMode")], (), "payable"),
    _fn("transferDeposit", [("address", "sender"), ("address", "recipient"), ("address", "token"), ("uint32", "season"), ("uint256", "amount")], [("uint256", "bdv")], "payable"),
    _fn("transferDeposits", [("address", "sender"), ("address", "recipient"), ("address", "token"), ("uint32[]", "seasons"), ("uint256[]", "amounts")], [("uint256[]", "bdvs")], "payable"),
    _fn("permitToken", [("address", "owner"), ("address", "spender"), ("address", "token"), ("uint256", "value")] + _PERMIT_SIGNATURE, (), "payable"),
    _fn("permitDeposit", [("address", "owner"), ("address", "spender"), ("address", "token"), ("uint256", "value")] + _PERMIT_SIGNATURE, (), "payable"),
    _fn("permitDeposits", [("address", "owner"), ("address", "spender"), ("address[]", "tokens"), ("uint256[]", "values")] + _PERMIT_SIGNATURE, (), "payable"),
    _fn("flashLoan", [("address[]", "tokens"), ("uint256[]", "amounts"), ("bytes", "data")]),
    _fn("receiveFlashLoan", [("address[]", "tokens"), ("uint256[]", "amounts"), ("uint256[]", "feeAmounts"), ("bytes", "userData")]),
]
