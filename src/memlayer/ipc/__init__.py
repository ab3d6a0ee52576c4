"""Local capture bridge for the browser agent."""
