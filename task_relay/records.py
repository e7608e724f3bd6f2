from __future__ import annotations
import time
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError

from .errors import InvalidSubmission
from .models import StoredUpload, TaskRecord, STATUS_RECEIVED
from .schemas import SubmissionForm


def utc_now_iso(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TaskIdFactory:
    """Issues ``task_<epoch ms>`` ids that never repeat within the process.

    When the clock has not moved past the last issued value (same millisecond,
    or a clock step backwards) the next id is last + 1.
    """

    def __init__(self, clock: Callable[[], float] = time.time, prefix: str = "task_"):
        self._clock = clock
        self._prefix = prefix
        self._last = 0

    def __call__(self) -> str:
        value = max(int(self._clock() * 1000), self._last + 1)
        self._last = value
        return f"{self._prefix}{value}"


def parse_submission(fields: Mapping[str, Any], *, max_extra_fields: int, max_field_length: int) -> SubmissionForm:
    try:
        form = SubmissionForm.model_validate(dict(fields))
    except ValidationError as e:
        err = e.errors()[0]
        loc = ".".join(str(p) for p in err.get("loc", ()))
        raise InvalidSubmission(f"Invalid field '{loc}': {err['msg']}" if loc else err["msg"]) from e

    if len(form.extra_fields) > max_extra_fields:
        raise InvalidSubmission(f"Too many fields (max {max_extra_fields} extra)")

    for key, value in form.to_fields().items():
        values = value if isinstance(value, list) else [value]
        if any(isinstance(v, str) and len(v) > max_field_length for v in values):
            raise InvalidSubmission(f"Field '{key}' is too long (max {max_field_length} characters)")
    return form


def build_task_record(
    form: SubmissionForm,
    upload: Optional[StoredUpload] = None,
    *,
    id_factory: Callable[[], str],
    now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> TaskRecord:
    return TaskRecord(
        id=id_factory(),
        timestamp=utc_now_iso(now()),
        fields=form.to_fields(),
        file_path=upload.path if upload else None,
        file_name=upload.original_name if upload else None,
        status=STATUS_RECEIVED,
    )
