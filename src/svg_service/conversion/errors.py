"""Errors raised while accepting and converting an upload."""


class ConversionError(Exception):
    """Base exception for conversion requests; rendered as ``{"message": ...}``."""

    status_code = 500

    def __init__(self, message: str, *, detail: str = "") -> None:
        super().__init__(message)
        self.message = message
        # Tool stderr, kept for logs only.
        self.detail = detail


class NoFileUploaded(ConversionError):
    status_code = 400

    def __init__(self) -> None:
        super().__init__("Error: No file uploaded.")


class UploadTooLarge(ConversionError):
    status_code = 413

    def __init__(self, max_upload_mb: int) -> None:
        super().__init__(f"Upload exceeds {max_upload_mb} MB")


class UnsupportedFileType(ConversionError):
    def __init__(self, extension: str) -> None:
        super().__init__(f"Unsupported file type: {extension}")
        self.extension = extension


class Stage1Failed(ConversionError):
    """First stage of a two-stage pipeline (PostScript to PDF) failed."""


class Stage2Failed(ConversionError):
    """Second stage of a two-stage pipeline (PDF to SVG) failed."""


class ConversionFailed(ConversionError):
    """Single-stage conversion failed."""
