from abc import ABC, abstractmethod


class LogStorageStrategy(ABC):
    """
    Where Logger entries end up.

    Logger hands every accepted entry to store_log() as three strings:
    the message, the priority name (e.g. "WARNING") and a
    "%Y-%m-%d %H:%M:%S" timestamp.
    """

    # STORE ONE ENTRY
    @abstractmethod
    def store_log(self, message, priority, timestamp):
        """
        Parameters:
        message (str): Log text.
        priority (str): Name of the LogPriority member.
        timestamp (str): Local time the entry was logged.
        """

    # DROP EVERYTHING STORED SO FAR
    @abstractmethod
    def flush_logs(self):
        """Discard stored entries."""

    @staticmethod
    def format_entry(message, priority, timestamp):
        """Single-line text form shared by text-based storages."""
        return f"[{timestamp}] [{priority}] {message}"
