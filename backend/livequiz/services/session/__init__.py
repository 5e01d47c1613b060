"""Quiz session core: per-participant game state and its synchronization.

Everything here runs on the participant's side of the game. The session
state reducer, the round controller and the results aggregator are plain
synchronous code; only the synchronization strategies talk to the shared
record store, and only the scheduler starts background tasks.
"""
