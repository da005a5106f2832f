"""Batch input, per-file outcomes and status feed events."""

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from intake.reconciliation.errors import ReadError


class FileStatus(str, Enum):
    """Processing state of one file in a batch."""

    QUEUED = "queued"
    READING = "reading"
    EXTRACTING = "extracting"
    SUCCESS = "success"
    ALL_DUPLICATE = "all_duplicate"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (FileStatus.SUCCESS, FileStatus.ALL_DUPLICATE, FileStatus.FAILED)


class BatchFile(BaseModel):
    """One uploaded file.

    The payload is either given in memory (``content``) or read from
    ``path`` when the batch reaches the file.
    """

    file_name: str
    mime_type: str = "application/octet-stream"
    content: bytes | None = None
    path: Path | None = None

    async def read(self) -> bytes:
        """Load the payload.

        Raises:
            ReadError: If the file cannot be read or no payload was given
        """
        if self.content is not None:
            return self.content
        if self.path is None:
            raise ReadError(f"No content provided for {self.file_name}")
        try:
            return await asyncio.to_thread(self.path.read_bytes)
        except OSError as e:
            raise ReadError(f"Failed to read {self.file_name}: {e}") from e


class StatusEvent(BaseModel):
    """A status change of the file at ``index`` in the batch."""

    index: int
    file_name: str
    status: FileStatus
    saved_count: int = 0
    duplicate_count: int = 0
    message: str | None = None


StatusCallback = Callable[[StatusEvent], Awaitable[None] | None]


class FileOutcome(BaseModel):
    """Terminal result for one file."""

    file_name: str
    status: FileStatus
    saved_count: int = 0
    duplicate_count: int = 0
    intake_number: str | None = None
    error: str | None = None


class BatchResult(BaseModel):
    """Result of a whole batch, in input order."""

    files: list[FileOutcome] = Field(default_factory=list)

    @property
    def total_saved(self) -> int:
        return sum(outcome.saved_count for outcome in self.files)

    @property
    def ledger_changed(self) -> bool:
        """Whether any record was saved, i.e. ledger views need a refresh."""
        return self.total_saved > 0
