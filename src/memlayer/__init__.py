"""memlayer — curate browsing history into a searchable personal memory store."""
