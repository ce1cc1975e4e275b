"""Routing: pattern compiler, route table, dispatcher, and history watcher.

Routes are registered during setup and frozen into an immutable
lookup table the first time the router matches, runs, or compiles.
"""
