import os
from dataclasses import dataclass
from pathlib import Path

from svg_service.conversion.strategies import (
    DEFAULT_GHOSTSCRIPT_COMMAND,
    DEFAULT_INKSCAPE_COMMAND,
    DEFAULT_PDF2SVG_COMMAND,
    build_strategies,
)

PACKAGE_STATIC_DIR = Path(__file__).resolve().parent / "static"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 3000
    reload: bool = False
    upload_dir: Path = Path("./uploads")
    converted_dir: Path = Path("./converted")
    static_dir: Path | None = PACKAGE_STATIC_DIR
    max_upload_mb: int = 100
    ai_converter: str = "pdf2svg"
    ghostscript_command: str = DEFAULT_GHOSTSCRIPT_COMMAND
    pdf2svg_command: str = DEFAULT_PDF2SVG_COMMAND
    inkscape_command: str = DEFAULT_INKSCAPE_COMMAND
    tool_timeout_sec: float | None = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        # Fail at startup, not on the first .ai upload
        self.strategies()

    @classmethod
    def from_env(cls) -> "Settings":
        static = os.getenv("STATIC_DIR")
        timeout = os.getenv("TOOL_TIMEOUT_SEC", "").strip()
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            reload=os.getenv("RELOAD", "false").lower() in _TRUTHY,
            upload_dir=Path(os.getenv("UPLOAD_DIR", "./uploads")),
            converted_dir=Path(os.getenv("CONVERTED_DIR", "./converted")),
            static_dir=Path(static) if static else PACKAGE_STATIC_DIR,
            max_upload_mb=int(os.getenv("MAX_UPLOAD_MB", "100")),
            ai_converter=os.getenv("AI_CONVERTER", "pdf2svg"),
            ghostscript_command=os.getenv("GHOSTSCRIPT_COMMAND", DEFAULT_GHOSTSCRIPT_COMMAND),
            pdf2svg_command=os.getenv("PDF2SVG_COMMAND", DEFAULT_PDF2SVG_COMMAND),
            inkscape_command=os.getenv("INKSCAPE_COMMAND", DEFAULT_INKSCAPE_COMMAND),
            tool_timeout_sec=float(timeout) if timeout else None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    def strategies(self):
        return build_strategies(
            ai_converter=self.ai_converter,
            ghostscript_command=self.ghostscript_command,
            pdf2svg_command=self.pdf2svg_command,
            inkscape_command=self.inkscape_command,
        )
