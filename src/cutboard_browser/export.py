"""Export job runner: one background export per view with progress."""

from __future__ import annotations

import asyncio
import itertools
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path

from cutboard_browser.models import PRODUCT_NAME
from cutboard_browser.services.events import EXPORT_PROGRESS_EVENT, Subscription
from cutboard_browser.services.interfaces import ContentStore, StoreError

logger = logging.getLogger(__name__)

EXPORT_EXTENSIONS = {"text": "md", "image": "zip"}

# Characters that are not allowed in file names on common platforms
_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')

# Job ids are unique per process; progress payloads carry the id of their job
_job_ids = itertools.count(1)


class ExportRejectedError(RuntimeError):
    """An export was requested while it cannot start."""


class ExportStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(slots=True, frozen=True)
class ExportRequest:
    """What to export and where; export covers the whole bucket/kind."""

    bucket_id: int
    content_kind: str
    bucket_name: str
    destination: Path


@dataclass(slots=True, frozen=True)
class ExportState:
    status: ExportStatus = ExportStatus.IDLE
    progress: int = 0
    path: str | None = None
    error: str | None = None

    @property
    def running(self) -> bool:
        return self.status is ExportStatus.RUNNING


def default_export_filename(
    bucket_name: str, content_kind: str, today: date | None = None
) -> str:
    """Suggested file name: ``CutBoard_<bucket>_<YYYYMMDD>.<md|zip>``."""
    today = today or date.today()
    ext = EXPORT_EXTENSIONS.get(content_kind, "md")
    safe_name = _UNSAFE_FILENAME_CHARS.sub("_", bucket_name).strip() or "export"
    return f"{PRODUCT_NAME}_{safe_name}_{today.strftime('%Y%m%d')}.{ext}"


class ExportJobRunner:
    """Runs at most one export at a time and republishes its progress.

    Each job gets a process-unique id. The store tags progress payloads
    with it (``{"job_id": ..., "progress": ...}``) and the runner ignores
    payloads of other jobs. The progress subscription lives exactly as long
    as the job: it is released when the export succeeds, fails, or the
    runner is disposed. Done and Failed stay visible until the next
    ``start``.
    """

    def __init__(
        self,
        store: ContentStore,
        *,
        on_change: Callable[[ExportState], None] | None = None,
    ) -> None:
        self._store = store
        self._on_change = on_change
        self._subscription: Subscription | None = None
        self._task: asyncio.Task[ExportState] | None = None
        self._job_id: int | None = None
        self.state = ExportState()

    def _set_state(self, state: ExportState) -> None:
        self.state = state
        if self._on_change is not None:
            self._on_change(state)

    def _release_subscription(self) -> None:
        subscription = self._subscription
        self._subscription = None
        if subscription is not None:
            subscription.release()

    def _end_job(self, job_id: int) -> bool:
        """Release the subscription if ``job_id`` is still the current job."""
        if job_id != self._job_id:
            return False
        self._job_id = None
        self._release_subscription()
        return True

    def _on_progress(self, payload: object) -> None:
        if not self.state.running or not isinstance(payload, dict):
            return
        if payload.get("job_id") != self._job_id:
            return
        progress = payload.get("progress")
        if not isinstance(progress, int) or isinstance(progress, bool):
            logger.debug("Ignoring non-integer export progress %r", progress)
            return
        self._set_state(ExportState(ExportStatus.RUNNING, progress=progress))

    def start(self, request: ExportRequest) -> asyncio.Task[ExportState]:
        """Start an export job.

        Raises:
            ExportRejectedError: If a job is already running. The running
                job is left untouched.
        """
        if self.state.running:
            raise ExportRejectedError("An export is already running")
        job_id = next(_job_ids)
        self._job_id = job_id
        self._set_state(ExportState(ExportStatus.RUNNING, progress=0))
        self._subscription = self._store.listen(EXPORT_PROGRESS_EVENT, self._on_progress)
        self._task = asyncio.create_task(self._run(request, job_id))
        return self._task

    async def _run(self, request: ExportRequest, job_id: int) -> ExportState:
        try:
            path = await self._store.export_entries(
                request.bucket_id,
                request.content_kind,
                bucket_name=request.bucket_name,
                destination=request.destination,
                job_id=job_id,
            )
        except StoreError as exc:
            if self._end_job(job_id):
                logger.warning("Export to %s failed", request.destination, exc_info=True)
                self._set_state(
                    ExportState(ExportStatus.FAILED, progress=self.state.progress, error=str(exc))
                )
            return self.state
        except BaseException:
            self._end_job(job_id)
            raise
        if self._end_job(job_id):
            logger.info("Exported %s entries to %s", request.content_kind, path)
            self._set_state(ExportState(ExportStatus.DONE, progress=100, path=path))
        else:
            logger.debug("Ignoring result of disposed export job %d", job_id)
        return self.state

    def dispose(self) -> None:
        """Release the progress subscription; a running job becomes Cancelled.

        The store-side export keeps running; its result is ignored.
        """
        self._job_id = None
        self._release_subscription()
        if self.state.running:
            self._set_state(ExportState(ExportStatus.CANCELLED, progress=self.state.progress))


__all__ = [
    "EXPORT_EXTENSIONS",
    "ExportJobRunner",
    "ExportRejectedError",
    "ExportRequest",
    "ExportState",
    "ExportStatus",
    "default_export_filename",
]
