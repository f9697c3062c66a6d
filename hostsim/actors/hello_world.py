"""
Greeting actor.

Only the system or init actor may construct it; every say_hello call bumps
the counter and answers with the new count.
"""

from hostsim.actor import Actor
from hostsim.primitives import INIT_ACTOR_ID, SYSTEM_ACTOR_ID


class HelloWorldActor(Actor):

    def constructor(self, params, state):
        self.require_caller(SYSTEM_ACTOR_ID, INIT_ACTOR_ID)
        state.save(self.ctx)

    def say_hello(self, params, state) -> str:
        state.count += 1
        state.save(self.ctx)
        return f"Hello world #{state.count}!"
