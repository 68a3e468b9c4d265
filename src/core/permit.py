# /src/core/permit.py
# Forwards signed permits to the ledger so an approval and its use can be
# consecutive steps of one batch. Validation is entirely the ledger's job.
from typing import Sequence

from src.core.tx import CallContext

class PermitRelay:
    def permit_token(self, ctx: CallContext, owner: str, spender: str, token: str, value: int,
                     deadline: int, v: int, r: bytes, s: bytes):
        self.ledger.permit_token(ctx.call_as(self.address), owner, spender, token, value, deadline, v, r, s)

    def permit_deposit(self, ctx: CallContext, owner: str, spender: str, token: str, value: int,
                       deadline: int, v: int, r: bytes, s: bytes):
        self.ledger.permit_deposit(ctx.call_as(self.address), owner, spender, token, value, deadline, v, r, s)

    def permit_deposits(self, ctx: CallContext, owner: str, spender: str, tokens: Sequence[str],
                        values: Sequence[int], deadline: int, v: int, r: bytes, s: bytes):
        self.ledger.permit_deposits(ctx.call_as(self.address), owner, spender, list(tokens), list(values), deadline, v, r, s)
