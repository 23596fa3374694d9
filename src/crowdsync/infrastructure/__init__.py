"""Infrastructure adapters: database and chain access."""
