"""Memlayer search — vector ranking, snapshot-qualified query cache, query interface."""
