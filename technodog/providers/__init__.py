"""External service adapters (LLMs, web services, SQLite stores)."""
