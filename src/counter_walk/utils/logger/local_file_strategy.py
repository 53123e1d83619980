from .log_storage_strategy import LogStorageStrategy
import os
from datetime import datetime


class LocalFileStrategy(LogStorageStrategy):
    """
    Appends entries to a text file, one line each.

    The file is truncated when the strategy is created, so every CLI run
    starts with a fresh log.
    """

    # OPEN (OR TRUNCATE) THE LOG FILE
    def __init__(self, file_location):
        """
        Args:
            file_location (str): Path of the log file. Relative paths are
                resolved against the current working directory.
        """
        self.file_location = self._resolve(file_location)
        self._rewrite(f"counter-walk log started {datetime.now()}")

    @staticmethod
    def _resolve(file_location):
        file_location = os.path.abspath(file_location)
        os.makedirs(os.path.dirname(file_location), exist_ok=True)
        return file_location

    def _rewrite(self, header):
        with open(self.file_location, 'w') as log_file:
            log_file.write(header + "\n")

    # APPEND ONE ENTRY
    def store_log(self, message, priority, timestamp):
        with open(self.file_location, 'a') as log_file:
            log_file.write(self.format_entry(message, priority, timestamp) + "\n")

    # TRUNCATE, KEEPING A MARKER LINE
    def flush_logs(self):
        self._rewrite(f"counter-walk log flushed {datetime.now()}")
