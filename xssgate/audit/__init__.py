"""XSSGate audit package: attack-log queueing, staging and archival.

Re-exports the public API for ergonomic imports:

    from xssgate.audit import AttackLogQueue, LogArchiver, LogEntry
"""

from xssgate.audit.archiver import ArchiveCycleResult, LogArchiver, run_archiver
from xssgate.audit.cache import InMemoryStagingCache, RedisStagingCache, split_index
from xssgate.audit.models import LogEntry, format_attack_log, truncate_log_text
from xssgate.audit.protocol import ArchivedLog, ArchiveStore, NullArchiveStore, StagingCache
from xssgate.audit.queue import AttackLogQueue

__all__ = [
    "ArchiveCycleResult",
    "LogArchiver",
    "run_archiver",
    "InMemoryStagingCache",
    "RedisStagingCache",
    "split_index",
    "LogEntry",
    "format_attack_log",
    "truncate_log_text",
    "ArchivedLog",
    "ArchiveStore",
    "NullArchiveStore",
    "StagingCache",
    "AttackLogQueue",
]
