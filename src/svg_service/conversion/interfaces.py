from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Protocol, Sequence

ChunkReader = Callable[[int], Awaitable[bytes]]


@dataclass(frozen=True)
class UploadedFile:
    storage_path: Path
    original_filename: str

    @property
    def extension(self) -> str:
        return Path(self.original_filename).suffix.lower()


@dataclass(frozen=True)
class ConversionJob:
    upload: UploadedFile
    input_path: Path
    output_path: Path
    intermediate_path: Path | None = None

    @property
    def download_name(self) -> str:
        return self.output_path.name


@dataclass(frozen=True)
class ToolResult:
    argv: tuple[str, ...]
    returncode: int | None
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ToolRunner(Protocol):
    async def run(self, argv: Sequence[str]) -> ToolResult:
        """Run one external command to completion without blocking the event loop.

        Never raises for a failing or missing executable; the outcome is
        reported through ToolResult.returncode.
        """


class StorageGateway(Protocol):
    async def save_upload(self, filename: str, reader: ChunkReader, *, max_bytes: int) -> UploadedFile:
        ...

    def plan_job(self, upload: UploadedFile, *, with_intermediate: bool) -> ConversionJob:
        ...

    def discard(self, *paths: Path | None) -> None:
        ...
