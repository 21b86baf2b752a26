"""Label width measurement for box sizing."""
from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from PIL import ImageFont

from .config import DiagramConfig

GENERIC_FONT_FALLBACKS = {
    "sans-serif": ["Helvetica", "Arial", "Liberation Sans", "DejaVu Sans"],
    "serif": ["Times New Roman", "Times", "Liberation Serif", "DejaVu Serif"],
    "monospace": [
        "Courier New",
        "Courier",
        "Liberation Mono",
        "DejaVu Sans Mono",
    ],
}


class TextMeasurer:
    """Measures label widths.

    With ``text_measurement="estimate"`` (the default) a label is
    ``len(text) * char_width`` wide, scaled by font size, so geometry depends
    only on the label and the configuration. With ``"font"`` the configured
    font is loaded through Pillow and measured glyph by glyph.
    """

    FONT_DIRS = [
        Path("/System/Library/Fonts"),
        Path("/System/Library/Fonts/Supplemental"),
        Path("/Library/Fonts"),
        Path("~/Library/Fonts").expanduser(),
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path("C:/Windows/Fonts"),
    ]

    def __init__(self, config: DiagramConfig) -> None:
        self.config = config
        self._font_cache: Dict[int, "ImageFont.ImageFont"] = {}
        self._font_paths: Dict[str, Optional[str]] = {}

    def width(self, text: str, size: Optional[float] = None) -> float:
        if size is None:
            size = self.config.font_size
        if self.config.text_measurement == "font":
            return self._font_width(text, size)
        return len(text) * self.config.char_width * (size / self.config.font_size)

    def font(self, size: float) -> "ImageFont.ImageFont":
        key_size = max(1, int(round(size)))
        if key_size in self._font_cache:
            return self._font_cache[key_size]

        candidates: List[str] = []
        if self.config.font_path:
            candidates.append(str(Path(self.config.font_path).expanduser()))
        family = self.config.font
        for fam in GENERIC_FONT_FALLBACKS.get(family.lower(), [family]):
            resolved = self._locate_font(fam)
            if resolved:
                candidates.append(resolved)
        candidates.append("DejaVuSans.ttf")

        font: Optional["ImageFont.ImageFont"] = None
        for candidate in candidates:
            try:
                path, index = self._parse_font_candidate(candidate)
                font = ImageFont.truetype(path, key_size, index=index)
                break
            except OSError:
                continue
        if font is None:
            font = ImageFont.load_default()
        self._font_cache[key_size] = font
        return font

    def _font_width(self, text: str, size: float) -> float:
        return float(self.font(size).getlength(text))

    def _locate_font(self, family: str) -> Optional[str]:
        key = family.lower()
        if key in self._font_paths:
            return self._font_paths[key]
        normalized = re.sub(r"[^a-z0-9]+", "", family, flags=re.IGNORECASE).lower()
        aliases = {normalized, normalized + "mt", normalized + "psmt"}
        best_match: Optional[Tuple[int, str]] = None
        for directory in self.FONT_DIRS:
            if not directory.exists() or not normalized:
                continue
            for pattern in ("*.ttf", "*.ttc"):
                # sorted so the same font wins on every run
                for path in sorted(directory.rglob(pattern)):
                    stem = re.sub(r"[^a-z0-9]+", "", path.stem, flags=re.IGNORECASE).lower()
                    if stem in aliases:
                        score = 0
                    elif stem.startswith(normalized):
                        score = 1
                    elif normalized in stem:
                        score = 2
                    else:
                        continue
                    candidate = str(path) if pattern == "*.ttf" else f"{path};0"
                    if best_match is None or score < best_match[0]:
                        best_match = (score, candidate)
        resolved = best_match[1] if best_match else None
        self._font_paths[key] = resolved
        return resolved

    @staticmethod
    def _parse_font_candidate(candidate: str) -> Tuple[str, int]:
        if ";" in candidate:
            path, idx = candidate.split(";", 1)
            try:
                return path, int(idx)
            except ValueError:
                return path, 0
        return candidate, 0


__all__ = ["TextMeasurer"]
