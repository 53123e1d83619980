from collections import deque

from .log_storage_strategy import LogStorageStrategy


class MemoryStrategy(LogStorageStrategy):
    """
    Keeps log entries in memory as (timestamp, priority, message) tuples.

    Used by tests and by hosts that embed the simulator and want to show
    the log themselves. With max_entries set, the oldest entries are
    dropped first.
    """

    def __init__(self, max_entries=None):
        self.max_entries = max_entries
        self.entries = deque(maxlen=max_entries)

    def store_log(self, message, priority, timestamp):
        self.entries.append((timestamp, priority, message))

    def flush_logs(self):
        self.entries.clear()

    def messages(self, priority=None):
        """Return stored messages, optionally filtered by priority name."""
        return [
            message for _, entry_priority, message in self.entries
            if priority is None or entry_priority == priority
        ]
