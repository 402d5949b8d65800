"""Database engine, sessions and schema bootstrap."""
