"""Run storage exports."""

from .event_log import EventLevel, EventLog, read_events
from .run_folders import CASE_RUN_PREFIX, GROUP_RUN_PREFIX, allocate_run_folder, new_run_id
from .run_index import INDEX_FILE_NAME, append_index_entry, index_path, read_run_index
from .run_records import (
    SKIPPED_STATUS,
    ChildRunRecord,
    GroupResult,
    GroupRunContext,
    IndexEntry,
    RunContext,
    RunnerMetadata,
    RunType,
    ScopeIdentities,
    TestCaseResult,
    aggregate_status,
    count_statuses,
    format_timestamp,
)
from .run_store import RunStore, redact_environment, write_json

__all__ = [
    "CASE_RUN_PREFIX",
    "ChildRunRecord",
    "EventLevel",
    "EventLog",
    "GROUP_RUN_PREFIX",
    "GroupResult",
    "GroupRunContext",
    "INDEX_FILE_NAME",
    "IndexEntry",
    "RunContext",
    "RunStore",
    "RunType",
    "RunnerMetadata",
    "SKIPPED_STATUS",
    "ScopeIdentities",
    "TestCaseResult",
    "aggregate_status",
    "allocate_run_folder",
    "append_index_entry",
    "count_statuses",
    "format_timestamp",
    "index_path",
    "new_run_id",
    "read_events",
    "read_run_index",
    "redact_environment",
    "write_json",
]
