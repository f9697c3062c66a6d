"""
Example actors.

Each actor is a manifest (*.actor or *.yaml), a hand-written implementation
module, the generated dispatch module (*_generated.py) and the lock file
recording its method numbers. Regenerate with scripts/regenerate_all.py.
"""
