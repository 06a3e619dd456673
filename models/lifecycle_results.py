"""Result types returned by the image lifecycle engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from models.image_record import ImageRecord

T = TypeVar("T")


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class LookupResult(Generic[T]):
    """Outcome of a read: a value, a normal not-found, or an adapter failure.

    End users see NOT_FOUND and FAILED the same way; the distinction is kept
    for logging and for callers that need to tell them apart.
    """

    status: LookupStatus
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def found(cls, value: T) -> "LookupResult[T]":
        return cls(LookupStatus.FOUND, value=value)

    @classmethod
    def not_found(cls) -> "LookupResult[T]":
        return cls(LookupStatus.NOT_FOUND)

    @classmethod
    def failed(cls, error: BaseException) -> "LookupResult[T]":
        return cls(LookupStatus.FAILED, error=error)

    @property
    def is_found(self) -> bool:
        return self.status is LookupStatus.FOUND


@dataclass
class ImageContent:
    """Raw bytes of an active image plus its declared content type."""

    data: bytes
    mime_type: str
    record: ImageRecord


@dataclass
class UploadTicket:
    """Everything a caller needs to upload an image and share the link."""

    id: str
    upload_url: str
    url: str
    expires_at: datetime
    created_at: datetime
    original_name: str
    mime_type: str
    size: int = 0

    def to_response(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "uploadUrl": self.upload_url,
            "url": self.url,
            "expiresAt": self.expires_at.isoformat(),
            "originalName": self.original_name,
            "mimeType": self.mime_type,
            "size": self.size,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class PurgeOutcome:
    """What the expire-and-purge transition managed to do for one record.

    Attributes:
        image_id: Id of the record the transition ran on.
        flag_set: True if this call wrote the flag (False if it was already set
            or no metadata row exists).
        object_deleted: True if the delete succeeded, False if the object was
            already gone, None if the delete failed.
        errors: Messages for steps that failed. Never raised.
    """

    image_id: str
    flag_set: bool = False
    object_deleted: Optional[bool] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class SweepReport:
    """Summary of one sweep over the metadata store."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    flagged_scan_candidates: int = 0
    full_scan_candidates: int = 0
    flags_set: int = 0
    objects_deleted: int = 0
    failures: List[str] = field(default_factory=list)

    def record(self, outcome: PurgeOutcome) -> None:
        if outcome.flag_set:
            self.flags_set += 1
        if outcome.object_deleted:
            self.objects_deleted += 1
        self.failures.extend(outcome.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "expiredImagesCount": self.flagged_scan_candidates,
            "lateExpiredImagesCount": self.full_scan_candidates,
            "flagsSet": self.flags_set,
            "objectsDeleted": self.objects_deleted,
            "failures": list(self.failures),
        }
