from .migrator import SQLiteMigrator
from .repos import SQLiteEventStore, SQLitePaymentStore, SQLiteSiteRepo

__all__ = [
    "SQLiteEventStore",
    "SQLiteMigrator",
    "SQLitePaymentStore",
    "SQLiteSiteRepo",
]
