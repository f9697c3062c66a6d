"""
Balance ledger actor.

The constructor records the owner; only the owner may mint. Transfers move
units from the caller's balance. Record classes live in the generated module,
which imports this one, so they are imported where they are needed.
"""

from hostsim.actor import Actor
from hostsim.errors import ExitCode, abort
from hostsim.primitives import INIT_ACTOR_ID, SYSTEM_ACTOR_ID


class LedgerActor(Actor):

    def constructor(self, owner: int, state):
        self.require_caller(SYSTEM_ACTOR_ID, INIT_ACTOR_ID)
        state.owner = owner
        state.save(self.ctx)

    def mint(self, params, state) -> int:
        self.require_caller(state.owner)
        state.balances[params.to] = state.balances.get(params.to, 0) + params.amount
        state.total_supply += params.amount
        state.save(self.ctx)
        return state.total_supply

    def transfer(self, params, state):
        from hostsim.actors.ledger_generated import TransferReceipt

        sender = self.ctx.caller()
        balance = state.balances.get(sender, 0)
        if params.amount > balance:
            abort(ExitCode.USR_ILLEGAL_STATE, f"insufficient balance: {balance} < {params.amount}")

        state.balances[sender] = balance - params.amount
        state.balances[params.to] = state.balances.get(params.to, 0) + params.amount
        state.last_transfer = params
        state.save(self.ctx)

        return TransferReceipt(
            sender=sender,
            to=params.to,
            sender_balance=state.balances[sender],
            to_balance=state.balances[params.to],
        )

    def balance_of(self, holder: int, state) -> int:
        return state.balances.get(holder, 0)

    def holders(self, params, state):
        return sorted(h for h, amount in state.balances.items() if amount > 0)

    def echo(self, params, state):
        return params
