import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Union

DEFAULT_GHOSTSCRIPT_COMMAND = "gs -dSAFER -sDEVICE=pdfwrite -dEPSCrop -o {output} {input}"
DEFAULT_PDF2SVG_COMMAND = "pdf2svg {input} {output}"
DEFAULT_INKSCAPE_COMMAND = "inkscape --export-type=svg --export-filename={output} {input}"


@dataclass(frozen=True)
class ToolCommand:
    """An external converter invocation template.

    Each argument may contain ``{input}`` and ``{output}`` placeholders; they
    are substituted per argument so paths with spaces stay a single argv item.
    """

    label: str
    template: tuple[str, ...]

    @classmethod
    def parse(cls, label: str, command: str) -> "ToolCommand":
        template = tuple(shlex.split(command))
        if not template:
            raise ValueError(f"empty command for {label}")
        joined = " ".join(template)
        if "{input}" not in joined or "{output}" not in joined:
            raise ValueError(f"{label} command must reference {{input}} and {{output}}: {command!r}")
        return cls(label=label, template=template)

    def render(self, input_path: Path, output_path: Path) -> list[str]:
        # str.replace rather than format() so literal braces in flags survive
        return [
            arg.replace("{input}", str(input_path)).replace("{output}", str(output_path))
            for arg in self.template
        ]


@dataclass(frozen=True)
class SingleStage:
    tool: ToolCommand
    label: str

    @property
    def failure_message(self) -> str:
        return f"{self.label} conversion failed."


@dataclass(frozen=True)
class TwoStage:
    first: ToolCommand
    second: ToolCommand


Strategy = Union[SingleStage, TwoStage]


def build_strategies(
    *,
    ai_converter: str = "pdf2svg",
    ghostscript_command: str = DEFAULT_GHOSTSCRIPT_COMMAND,
    pdf2svg_command: str = DEFAULT_PDF2SVG_COMMAND,
    inkscape_command: str = DEFAULT_INKSCAPE_COMMAND,
) -> Mapping[str, Strategy]:
    """Return the extension -> strategy table.

    ``.eps`` always goes through Ghostscript then pdf2svg. ``.ai`` files are
    PDF-compatible, so by default pdf2svg reads them directly; setting
    ``ai_converter="inkscape"`` switches to Inkscape's batch export instead.
    """
    ghostscript = ToolCommand.parse("Ghostscript", ghostscript_command)
    pdf2svg = ToolCommand.parse("pdf2svg", pdf2svg_command)

    choice = ai_converter.strip().lower()
    if choice == "pdf2svg":
        ai_strategy: Strategy = SingleStage(tool=pdf2svg, label="AI")
    elif choice == "inkscape":
        ai_strategy = SingleStage(tool=ToolCommand.parse("Inkscape", inkscape_command), label="Inkscape")
    else:
        raise ValueError(f"unknown AI converter {ai_converter!r}; expected 'pdf2svg' or 'inkscape'")

    return {
        ".ai": ai_strategy,
        ".eps": TwoStage(first=ghostscript, second=pdf2svg),
    }
