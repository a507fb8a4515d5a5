from enum import Enum


class BatchStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class BatchRowStatus(str, Enum):
    pending = "pending"
    success = "success"
    failed = "failed"
    skipped = "skipped"


class ValidationStatus(str, Enum):
    pending = "pending"
    passed = "passed"
    failed = "failed"


class IssueStatus(str, Enum):
    open = "open"
    resolved = "resolved"
    ignored = "ignored"
