"""memlayer command-line interface (Typer + Rich)."""
