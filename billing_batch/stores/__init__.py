"""SQLAlchemy-backed stores."""

from billing_batch.stores.sqlalchemy_store import SqlInterestStore, SqlReminderStore, SqlScheduleStore

__all__ = ["SqlInterestStore", "SqlReminderStore", "SqlScheduleStore"]
