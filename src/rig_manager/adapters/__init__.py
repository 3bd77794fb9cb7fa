"""Adapters to the outside world: the rig executable, child processes,
renv.lock files and terminal consoles.
"""
