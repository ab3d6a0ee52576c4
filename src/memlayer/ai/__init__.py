"""External AI capabilities (summarise, embed, rank) behind a protocol."""
