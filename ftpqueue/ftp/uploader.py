"""File uploader for ftpqueue.

Streams a local file to the server over a passive data channel: PASV,
then STOR, then the file bytes once the server sends its preliminary
reply.
"""

import logging
import time
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Union

from ftpqueue.ftp.commands import Command, Step
from ftpqueue.ftp.data_channel import DataChannel, DataChannelManager, log_task_error
from ftpqueue.ftp.exceptions import ProtocolError, TransferError
from ftpqueue.ftp.reply import Reply
from ftpqueue.utils.validators import validate_file_path

if TYPE_CHECKING:
    from ftpqueue.ftp.connection import FTPSession

logger = logging.getLogger("ftpqueue.uploader")

# Local completion marker; never a server reply code
UPLOAD_COMPLETE = 1


@dataclass
class UploadProgress:
    """Progress information for an upload operation."""
    remote_path: str
    file_name: str
    bytes_sent: int
    bytes_total: int

    @property
    def percent(self) -> float:
        """Upload progress as percentage (0-100)."""
        if self.bytes_total == 0:
            return 0.0
        return (self.bytes_sent / self.bytes_total) * 100.0


@dataclass
class UploadResult:
    """
    Result handed to the upload callback at local end of stream.

    status is UPLOAD_COMPLETE, not the server's transfer-complete code:
    the callback fires before the server's final reply (usually 226)
    has been received.
    """
    local_path: str
    remote_path: str
    status: int = UPLOAD_COMPLETE
    message: str = ""
    bytes_transferred: int = 0
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """True for the local completion marker."""
        return self.status == UPLOAD_COMPLETE


# Type alias for progress callback
ProgressCallback = Callable[[UploadProgress], None]

UploadCallback = Callable[[Optional[Exception], Optional[UploadResult]], None]


@dataclass
class UploadJob:
    """One STOR transfer, from invocation until its callback has fired."""
    local_path: str
    remote_path: str
    callback: Optional[UploadCallback] = None
    on_progress: Optional[ProgressCallback] = None
    channel: Optional[DataChannel] = None
    started: bool = False
    finished: bool = False
    bytes_sent: int = 0
    started_at: float = field(default_factory=time.time)

    def finish(self, error: Optional[Exception], result: Optional[UploadResult]) -> None:
        """Deliver the outcome once; later outcomes are ignored."""
        if self.finished:
            return
        self.finished = True
        if self.callback:
            self.callback(error, result)


class FileUploader:
    """Handles file uploads over passive data channels."""

    # Block size for FTP transfers (8KB)
    BLOCK_SIZE = 8192

    def __init__(self, session: "FTPSession", data_channels: DataChannelManager):
        """
        Initialize the uploader.

        Args:
            session: Session owning the control connection
            data_channels: Manager used to negotiate PASV
        """
        self._session = session
        self._data_channels = data_channels
        self._current: Optional[UploadJob] = None

    @property
    def current(self) -> Optional[UploadJob]:
        """Most recent upload job."""
        return self._current

    def upload(
        self,
        local_path: Union[str, Path],
        remote_path: str,
        callback: Optional[UploadCallback] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> UploadJob:
        """
        Queue an upload of local_path to remote_path.

        Args:
            local_path: Local file to read
            remote_path: Target path on the server
            callback: Receives (error, UploadResult)
            on_progress: Optional callback for progress updates

        Returns:
            The UploadJob tracking this transfer
        """
        job = UploadJob(
            local_path=str(local_path),
            remote_path=remote_path,
            callback=callback,
            on_progress=on_progress,
        )
        self._current = job
        self._data_channels.open_passive(partial(self._on_passive, job))
        return job

    def _on_passive(
        self,
        job: UploadJob,
        error: Optional[Exception],
        channel: Optional[DataChannel]
    ) -> None:
        if error is not None:
            job.finish(error, None)
            return
        job.channel = channel
        self._session.queue.append(
            Command(
                text=f"STOR {job.remote_path}",
                continuation=partial(self._on_stor_reply, job),
            ),
            urgent=True,
        )

    def _on_stor_reply(
        self,
        job: UploadJob,
        error: Optional[Exception],
        reply: Reply
    ) -> Step:
        if reply.code in (125, 150):
            if job.started:
                return Step.HOLD
            job.started = True

            is_valid, problem = validate_file_path(job.local_path)
            if not is_valid:
                # Connect and close so the server answers STOR instead of waiting
                task = self._session.loop.create_task(job.channel.shutdown())
                task.add_done_callback(log_task_error)
                job.finish(
                    TransferError(job.local_path, job.remote_path, FileNotFoundError(problem)),
                    None,
                )
                return Step.HOLD

            logger.info(f"Uploading {job.local_path} to {job.remote_path}")
            task = self._session.loop.create_task(self._stream(job))
            task.add_done_callback(log_task_error)
            # Control channel stays parked until the final reply
            return Step.HOLD

        if error is not None:
            if job.finished:
                logger.warning(
                    f"Server rejected {job.remote_path} after local completion: {reply.message}"
                )
            if job.channel is not None:
                job.channel.close()
            job.finish(error, None)
            return Step.ADVANCE

        if not job.started:
            # Final reply without a data transfer: no bytes were stored
            job.channel.close()
            job.finish(
                TransferError(
                    job.local_path,
                    job.remote_path,
                    ProtocolError(reply.code, f"No data transfer was started: {reply.message}"),
                ),
                None,
            )
            return Step.ADVANCE

        logger.info(f"Server confirmed {job.remote_path}: {reply.message}")
        return Step.ADVANCE

    async def _stream(self, job: UploadJob) -> None:
        file_name = Path(job.local_path).name
        loop = self._session.loop

        try:
            file_size = Path(job.local_path).stat().st_size
            await job.channel.wait_connected()
            # File reads run in the default executor so the loop keeps serving
            f = await loop.run_in_executor(None, open, job.local_path, "rb")
            try:
                while True:
                    block = await loop.run_in_executor(None, f.read, self.BLOCK_SIZE)
                    if not block:
                        break
                    await job.channel.write(block)
                    job.bytes_sent += len(block)

                    if job.on_progress:
                        job.on_progress(UploadProgress(
                            remote_path=job.remote_path,
                            file_name=file_name,
                            bytes_sent=job.bytes_sent,
                            bytes_total=file_size,
                        ))
            finally:
                await loop.run_in_executor(None, f.close)
            await job.channel.aclose()
        except OSError as e:
            logger.error(f"Upload of {job.local_path} failed: {e}")
            job.channel.close()
            job.finish(TransferError(job.local_path, job.remote_path, e), None)
            return

        # Reported before the server's final reply arrives
        job.finish(None, UploadResult(
            local_path=job.local_path,
            remote_path=job.remote_path,
            message=f"{job.local_path} has been stored",
            bytes_transferred=job.bytes_sent,
            duration_seconds=time.time() - job.started_at,
        ))

