from __future__ import annotations
import logging
from typing import Any, Dict, Iterable, Optional, Tuple

import httpx
from starlette.datastructures import UploadFile

from .errors import UnexpectedFile
from .models import RelayReceipt
from .records import TaskIdFactory, build_task_record, parse_submission
from .relay import RelayClient
from .settings import Settings
from .uploads import FILE_FIELD, UploadReceiver

logger = logging.getLogger("task_relay.service")


def split_form(items: Iterable[Tuple[str, Any]]) -> Tuple[Dict[str, Any], Optional[UploadFile]]:
    """Separate plain fields from the single allowed file part.

    Repeated plain keys collapse into a list, in submission order.
    """
    fields: Dict[str, Any] = {}
    upload: Optional[UploadFile] = None
    for key, value in items:
        if isinstance(value, UploadFile):
            if key != FILE_FIELD or upload is not None:
                raise UnexpectedFile()
            upload = value
            continue
        if key in fields:
            prev = fields[key]
            fields[key] = prev + [value] if isinstance(prev, list) else [prev, value]
        else:
            fields[key] = value
    return fields, upload


class SubmissionService:
    """One per process; owns the collaborators a submission passes through."""

    def __init__(
        self,
        settings: Settings,
        receiver: UploadReceiver,
        relay: RelayClient,
        id_factory: Optional[TaskIdFactory] = None,
    ):
        self.settings = settings
        self.receiver = receiver
        self.relay = relay
        self.id_factory = id_factory or TaskIdFactory()

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "SubmissionService":
        receiver = UploadReceiver(
            upload_dir=settings.upload_dir,
            max_bytes=settings.max_upload_bytes,
            allowed_extensions=settings.extension_allowlist,
        )
        relay = RelayClient(
            settings.n8n_webhook_url,
            timeout=settings.relay_timeout_seconds,
            max_attempts=settings.relay_max_attempts,
            backoff_seconds=settings.relay_backoff_seconds,
            transport=transport,
        )
        return cls(settings, receiver, relay)

    async def submit(self, fields: Dict[str, Any], upload: Optional[UploadFile] = None) -> RelayReceipt:
        # fields first: a rejected submission must not leave a stored file behind
        form = parse_submission(
            fields,
            max_extra_fields=self.settings.max_extra_fields,
            max_field_length=self.settings.max_field_length,
        )
        stored = await self.receiver.receive(upload)
        record = build_task_record(form, stored, id_factory=self.id_factory)
        logger.info("relaying task_id=%s has_file=%s", record.id, stored is not None)
        return await self.relay.send(record)
