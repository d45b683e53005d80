import logging
from typing import Mapping

from .errors import ConversionError, ConversionFailed, Stage1Failed, Stage2Failed, UnsupportedFileType
from .interfaces import ConversionJob, StorageGateway, ToolResult, ToolRunner, UploadedFile
from .strategies import SingleStage, Strategy, ToolCommand, TwoStage

logger = logging.getLogger(__name__)


class ConversionPipeline:
    """Turns one stored upload into an SVG using external tools.

    Framework-agnostic: storage, process execution and the extension ->
    strategy table are all injected. Whatever happens, the input and any
    intermediate file are removed once the pipeline gives up; on success the
    caller owns the job until it calls release().
    """

    def __init__(
        self,
        storage: StorageGateway,
        runner: ToolRunner,
        strategies: Mapping[str, Strategy],
    ) -> None:
        self._storage = storage
        self._runner = runner
        self._strategies = {ext.lower(): s for ext, s in strategies.items()}

    @property
    def supported_extensions(self) -> list[str]:
        return sorted(self._strategies)

    def strategy_for(self, extension: str) -> Strategy:
        try:
            return self._strategies[extension.lower()]
        except KeyError:
            raise UnsupportedFileType(extension) from None

    async def convert(self, upload: UploadedFile) -> ConversionJob:
        job: ConversionJob | None = None
        try:
            strategy = self.strategy_for(upload.extension)
            job = self._storage.plan_job(upload, with_intermediate=isinstance(strategy, TwoStage))
            if isinstance(strategy, TwoStage):
                await self._run_two_stage(job, strategy)
            else:
                await self._run_single_stage(job, strategy)
        except ConversionError as e:
            logger.warning("Conversion of %s failed: %s %s", upload.original_filename, e.message, e.detail)
            self._abandon(upload, job)
            raise
        except BaseException:
            self._abandon(upload, job)
            raise
        return job

    def release(self, job: ConversionJob) -> None:
        self._storage.discard(job.output_path, job.input_path)

    async def _run_single_stage(self, job: ConversionJob, strategy: SingleStage) -> None:
        result = await self._invoke(strategy.tool, job.input_path, job.output_path)
        if not result.ok:
            raise ConversionFailed(strategy.failure_message, detail=result.stderr)

    async def _run_two_stage(self, job: ConversionJob, strategy: TwoStage) -> None:
        intermediate = job.intermediate_path
        if intermediate is None:
            raise ValueError("two-stage job planned without an intermediate path")

        first = await self._invoke(strategy.first, job.input_path, intermediate)
        if not first.ok:
            raise Stage1Failed(f"{strategy.first.label} conversion failed.", detail=first.stderr)

        try:
            second = await self._invoke(strategy.second, intermediate, job.output_path)
        finally:
            self._storage.discard(intermediate)
        if not second.ok:
            raise Stage2Failed(f"{strategy.second.label} conversion failed.", detail=second.stderr)

    async def _invoke(self, tool: ToolCommand, source, target) -> ToolResult:
        return await self._runner.run(tool.render(source, target))

    def _abandon(self, upload: UploadedFile, job: ConversionJob | None) -> None:
        if job is None:
            self._storage.discard(upload.storage_path)
        else:
            self._storage.discard(job.input_path, job.intermediate_path, job.output_path)
