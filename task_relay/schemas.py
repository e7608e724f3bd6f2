import math
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, model_validator


class SubmissionForm(BaseModel):
    """Caller-supplied task fields.

    The five known fields are typed; anything else the client sends is kept
    as an extra and forwarded verbatim, provided it is a plain JSON scalar or
    a list of strings (repeated form keys).
    """

    model_config = ConfigDict(extra="allow", populate_by_name=False, frozen=True)

    name: Optional[StrictStr] = None
    email: Optional[StrictStr] = None
    task_type: Optional[StrictStr] = Field(default=None, alias="taskType")
    description: Optional[StrictStr] = None
    priority: Optional[StrictStr] = None

    @model_validator(mode="after")
    def _check_extras(self):
        for key, value in (self.model_extra or {}).items():
            if isinstance(value, list):
                if not all(isinstance(v, str) for v in value):
                    raise ValueError(f"Field '{key}' must be a string")
            elif value is not None and not isinstance(value, (str, bool, int, float)):
                raise ValueError(f"Field '{key}' must be a string")
            elif isinstance(value, float) and not math.isfinite(value):
                raise ValueError(f"Field '{key}' must be a finite number")
        return self

    @property
    def extra_fields(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})

    def to_fields(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


class SubmissionAccepted(BaseModel):
    success: bool = True
    message: str = "Task submitted successfully"
    taskId: str


class SubmissionFailed(BaseModel):
    success: bool = False
    message: str


class HealthStatus(BaseModel):
    status: str = "healthy"
    time: str
