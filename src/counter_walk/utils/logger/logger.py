import threading
from datetime import datetime
from enum import Enum
import os
from .local_file_strategy import LocalFileStrategy


LOG_PATH_ENV = "COUNTER_WALK_LOG_PATH"
DEFAULT_LOG_PATH = "/tmp/counter_walk_logs.txt"


class Logger:
    """
    Process-wide logger with pluggable storage.

    Static class: call Logger.initialize() (or set a storage strategy)
    once, then Logger.log() from anywhere. Until a strategy is set every
    call is a no-op, so library code can log unconditionally.
    """

    class LogPriority(Enum):
        DEBUG = 1
        INFO = 2
        WARNING = 3
        ERROR = 4
        CRITICAL = 5

    is_logging_enabled = True
    log_storage_strategy = None
    min_priority = LogPriority.DEBUG
    _log_lock = threading.Lock()
    _strategy_lock = threading.Lock()
    _initialize_lock = threading.Lock()

    # INITIALIZE LOGGER
    @classmethod
    def initialize(cls):
        """
        Install the default file storage if no strategy is set yet.

        The file location comes from COUNTER_WALK_LOG_PATH and falls back
        to /tmp/counter_walk_logs.txt.
        """
        with cls._initialize_lock:
            if cls.log_storage_strategy is None:
                file_location = os.getenv(LOG_PATH_ENV, DEFAULT_LOG_PATH)
                cls.set_log_storage_strategy(LocalFileStrategy(file_location))
                cls.log(f"Logging to {file_location}", cls.LogPriority.INFO)

    # LOG WITH MESSAGE AND PRIORITY
    @classmethod
    def log(cls, message, priority=LogPriority.DEBUG):
        with cls._log_lock:
            if not cls.is_logging_enabled or cls.log_storage_strategy is None:
                return
            if priority.value < cls.min_priority.value:
                return
            cls.log_storage_strategy.store_log(
                message, priority.name, datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            )

    # SET LOG STORAGE STRATEGY
    @classmethod
    def set_log_storage_strategy(cls, log_storage_strategy):
        with cls._strategy_lock:
            cls.log_storage_strategy = log_storage_strategy

    @classmethod
    def set_min_priority(cls, priority):
        """Drop messages below `priority` (DEBUG keeps everything)."""
        cls.min_priority = priority

    # FLUSH LOGS
    @classmethod
    def flush_logs(cls):
        if cls.is_logging_enabled and cls.log_storage_strategy:
            cls.log_storage_strategy.flush_logs()

    @classmethod
    def disable_logging(cls):
        cls.log("Logging disabled")
        cls.is_logging_enabled = False

    @classmethod
    def enable_logging(cls):
        cls.is_logging_enabled = True
        cls.log("Logging enabled")

    @classmethod
    def reset(cls):
        """Detach storage and restore defaults."""
        with cls._strategy_lock:
            cls.log_storage_strategy = None
        cls.is_logging_enabled = True
        cls.min_priority = cls.LogPriority.DEBUG
