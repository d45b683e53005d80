import asyncio
import logging
import os
import secrets
import signal
import time
from pathlib import Path
from typing import Callable, Sequence

from .errors import UploadTooLarge
from .interfaces import ChunkReader, ConversionJob, StorageGateway, ToolResult, ToolRunner, UploadedFile

logger = logging.getLogger(__name__)

CHUNK = 1024 * 1024


def timestamp_name(extension: str) -> str:
    """Storage name for a new upload: ``<epoch-ms>-<random hex><extension>``."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}{extension}"


class LocalStorage(StorageGateway):
    def __init__(
        self,
        upload_dir: str | Path,
        converted_dir: str | Path,
        *,
        naming: Callable[[str], str] = timestamp_name,
    ) -> None:
        self.upload_dir = Path(upload_dir).resolve()
        self.converted_dir = Path(converted_dir).resolve()
        self._naming = naming

    def ensure_dirs(self) -> None:
        for d in (self.upload_dir, self.converted_dir):
            d.mkdir(parents=True, exist_ok=True)

    async def save_upload(self, filename: str, reader: ChunkReader, *, max_bytes: int) -> UploadedFile:
        """Stream an upload to disk under a fresh storage name.

        Keeps the original extension as given (case preserved) so the stored
        name mirrors what the client sent. Raises UploadTooLarge and removes
        the partial file when the stream exceeds max_bytes.
        """
        original_name = filename or "upload"
        input_path = self.upload_dir / self._naming(Path(original_name).suffix)
        size_bytes = 0
        try:
            with input_path.open("wb") as f_out:
                while True:
                    chunk = await reader(CHUNK)
                    if not chunk:
                        break
                    size_bytes += len(chunk)
                    if size_bytes > max_bytes:
                        raise UploadTooLarge(max_bytes // (1024 * 1024))
                    f_out.write(chunk)
        except BaseException:
            self.discard(input_path)
            raise
        logger.info("Stored upload %s as %s (%d bytes)", original_name, input_path.name, size_bytes)
        return UploadedFile(storage_path=input_path, original_filename=original_name)

    def plan_job(self, upload: UploadedFile, *, with_intermediate: bool) -> ConversionJob:
        input_path = upload.storage_path
        output_path = self.converted_dir / f"{input_path.stem}.svg"
        intermediate = input_path.with_name(input_path.name + ".pdf") if with_intermediate else None
        return ConversionJob(
            upload=upload,
            input_path=input_path,
            output_path=output_path,
            intermediate_path=intermediate,
        )

    def discard(self, *paths: Path | None) -> None:
        """Best-effort delete; never raises."""
        for p in paths:
            if p is None:
                continue
            try:
                p.unlink(missing_ok=True)
            except OSError as e:
                logger.debug("Could not remove %s: %s", p, e)


class SubprocessToolRunner(ToolRunner):
    def __init__(self, *, timeout_sec: float | None = None) -> None:
        self._timeout = timeout_sec

    async def run(self, argv: Sequence[str]) -> ToolResult:
        args = tuple(argv)
        logger.info("Running %s", " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            return ToolResult(argv=args, returncode=None, stderr=str(e))

        try:
            _, err = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            # Children inherit the stderr pipe; wait() returns only once the whole group is gone
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            await proc.wait()
            return ToolResult(argv=args, returncode=None, stderr=f"timed out after {self._timeout}s")
        return ToolResult(
            argv=args,
            returncode=proc.returncode,
            stderr=(err or b"").decode("utf-8", errors="replace"),
        )
