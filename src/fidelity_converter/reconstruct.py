"""Rebuild document structure from the flat text a PDF extractor returns.

Text is split into paragraphs at blank lines. Inside a paragraph each line is
classified as a heading, a list item, or body text; consecutive body lines are
joined back into one paragraph block.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator

HEADING_MAX_LENGTH = 100
DEFAULT_HEADING_LEVEL = 2
MAX_HEADING_LEVEL = 3

NUMBERED_RE = re.compile(r"^(\d+)\.\s+\S")
BULLET_RE = re.compile(r"^[-•*▪●–]\s+")
ENUMERATED_PATTERNS = (
    re.compile(r"^\d+\.\s"),
    re.compile(r"^[a-z]\.\s", re.IGNORECASE),
    re.compile(r"^[ivxlc]+\.\s", re.IGNORECASE),
    re.compile(r"^\(\d+\)\s"),
    re.compile(r"^\d+\)\s"),
)
PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


class BlockKind(str, Enum):
    HEADING = "heading"
    LIST_ITEM = "list-item"
    PARAGRAPH = "paragraph"


@dataclass(frozen=True, slots=True)
class StructureBlock:
    kind: BlockKind
    text: str
    level: int | None = None
    ordered: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.kind.value, "text": self.text}
        if self.level is not None:
            data["level"] = self.level
        if self.kind is BlockKind.LIST_ITEM:
            data["ordered"] = self.ordered
        return data


def _is_upper(line: str) -> bool:
    return any(char.isalpha() for char in line) and line == line.upper()


class PdfStructureReconstructor:
    def __init__(
        self,
        *,
        heading_max_length: int = HEADING_MAX_LENGTH,
        default_level: int = DEFAULT_HEADING_LEVEL,
        max_level: int = MAX_HEADING_LEVEL,
    ) -> None:
        self.heading_max_length = heading_max_length
        self.default_level = default_level
        self.max_level = max_level

    def reconstruct(self, text: str) -> list[StructureBlock]:
        blocks: list[StructureBlock] = []
        for paragraph in self.paragraphs(text):
            blocks.extend(self._classify_paragraph(paragraph))
        return blocks

    @staticmethod
    def paragraphs(text: str) -> list[list[str]]:
        normalized = text.replace("\r\n", "\n").replace("\r", "\n")
        result = []
        for chunk in PARAGRAPH_BREAK_RE.split(normalized):
            lines = [line.strip() for line in chunk.split("\n") if line.strip()]
            if lines:
                result.append(lines)
        return result

    def is_heading(self, line: str, followed_by_blank: bool) -> bool:
        if len(line) >= self.heading_max_length or line.endswith("."):
            return False
        return followed_by_blank or _is_upper(line) or NUMBERED_RE.match(line) is not None

    def heading_level(self, line: str) -> int:
        if _is_upper(line):
            return 1
        numbered = NUMBERED_RE.match(line)
        if numbered:
            return min(max(int(numbered.group(1)), 1), self.max_level)
        return self.default_level

    @staticmethod
    def list_item(line: str) -> StructureBlock | None:
        bullet = BULLET_RE.match(line)
        if bullet:
            return StructureBlock(BlockKind.LIST_ITEM, line[bullet.end():].strip())
        if any(pattern.match(line) for pattern in ENUMERATED_PATTERNS):
            return StructureBlock(BlockKind.LIST_ITEM, line, ordered=True)
        return None

    def _classify_paragraph(self, lines: list[str]) -> Iterator[StructureBlock]:
        pending: list[str] = []
        for index, line in enumerate(lines):
            last = index == len(lines) - 1
            # only "<digits>. " markers may still read as a section heading
            numbered = NUMBERED_RE.match(line) is not None
            item = None if numbered else self.list_item(line)
            if item is None and self.is_heading(line, followed_by_blank=last):
                yield from _flush(pending)
                yield StructureBlock(BlockKind.HEADING, line, level=self.heading_level(line))
                continue
            if numbered:
                item = self.list_item(line)
            if item is not None:
                yield from _flush(pending)
                yield item
                continue
            pending.append(line)
        yield from _flush(pending)


def join_lines(lines: Iterable[str]) -> str:
    text = ""
    for line in lines:
        if not text:
            text = line
        elif text.endswith("-") and not text.endswith(" -"):
            text = text[:-1] + line
        else:
            text = f"{text} {line}"
    return text


def _flush(pending: list[str]) -> Iterator[StructureBlock]:
    if pending:
        yield StructureBlock(BlockKind.PARAGRAPH, join_lines(pending))
        pending.clear()


__all__ = ["BlockKind", "PdfStructureReconstructor", "StructureBlock", "join_lines"]
