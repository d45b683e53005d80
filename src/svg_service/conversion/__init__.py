"""
Domain layer for vector-graphics conversion.
Provides the data types, gateways and the pipeline that turns an uploaded
.ai/.eps file into SVG through external tools, so front-ends (HTTP or
others) share the same conversion and cleanup logic.
"""

from .adapters import LocalStorage, SubprocessToolRunner
from .errors import (
    ConversionError,
    ConversionFailed,
    NoFileUploaded,
    Stage1Failed,
    Stage2Failed,
    UnsupportedFileType,
    UploadTooLarge,
)
from .interfaces import ConversionJob, StorageGateway, ToolResult, ToolRunner, UploadedFile
from .service import ConversionPipeline
from .strategies import SingleStage, ToolCommand, TwoStage, build_strategies
