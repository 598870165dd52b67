"""Terminal transcript normalization helpers."""

from __future__ import annotations

import re

from rich.text import Text

_SGR_RE = re.compile(r"\x1b\[([0-9:;]*)m")
# Cursor movement / erase sequences that Rich cannot render.
_NON_SGR_CSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-ln-z]")


def colon_sgr_to_standard(text: str) -> str:
    """Convert colon-separated SGR params to semicolons for Rich."""
    return _SGR_RE.sub(
        lambda m: f"\x1b[{m.group(1).replace(':', ';')}m",
        text,
    )


def trim_trailing_blank_lines(text: str) -> str:
    """Drop trailing blank lines while preserving line endings."""
    lines = text.splitlines(keepends=True)
    while lines and not lines[-1].strip():
        lines.pop()
    return "".join(lines)


def transcript_to_text(content: str) -> Text:
    """Render a captured transcript (possibly ANSI-coloured) as Rich text."""
    cleaned = _NON_SGR_CSI_RE.sub("", content.replace("\r\n", "\n"))
    return Text.from_ansi(colon_sgr_to_standard(trim_trailing_blank_lines(cleaned)))
