"""aiosqlite-backed stores.  All of them can share one database file."""

from technodog.providers.store.sqlite_agent_store import SQLiteAgentStore
from technodog.providers.store.sqlite_artist_store import SQLiteArtistStore
from technodog.providers.store.sqlite_book_store import SQLiteBookStore
from technodog.providers.store.sqlite_doggy_store import SQLiteDoggyStore
from technodog.providers.store.sqlite_playbook_store import SQLitePlaybookStore
from technodog.providers.store.sqlite_video_store import SQLiteVideoStore

__all__ = [
    "SQLiteAgentStore",
    "SQLiteArtistStore",
    "SQLiteBookStore",
    "SQLiteDoggyStore",
    "SQLitePlaybookStore",
    "SQLiteVideoStore",
]
