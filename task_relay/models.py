from __future__ import annotations
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

RESERVED_FIELDS = frozenset({"id", "timestamp", "filePath", "fileName", "status"})
STATUS_RECEIVED = "received"


@dataclass(frozen=True)
class StoredUpload:
    path: str
    original_name: str
    stored_name: str
    size: int


@dataclass(frozen=True)
class TaskRecord:
    id: str
    timestamp: str
    fields: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    file_path: Optional[str] = None
    file_name: Optional[str] = None
    status: str = STATUS_RECEIVED

    def __post_init__(self):
        if (self.file_path is None) != (self.file_name is None):
            raise ValueError("file_path and file_name must be set together")
        # caller-supplied keys never shadow the builder-assigned ones
        cleaned = {k: v for k, v in self.fields.items() if k not in RESERVED_FIELDS}
        object.__setattr__(self, "fields", MappingProxyType(cleaned))

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            **self.fields,
            "filePath": self.file_path,
            "fileName": self.file_name,
            "status": self.status,
        }


@dataclass(frozen=True)
class RelayReceipt:
    task_id: str
    status_code: int
