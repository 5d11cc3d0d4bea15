"""
Markdown Structural Parser

Single-pass, line-oriented tokenizer producing headings, lists, blockquotes,
fenced code, horizontal rules, pipe tables and paragraphs. It never raises:
constructs it cannot recognize degrade to paragraphs.

Usage:
    from slidefoundry.services.generator.markdown_parser import parse_markdown

    tokens = parse_markdown(text)
    sections = build_sections(tokens)
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from slidefoundry.services.generator.models import MarkdownSection
from slidefoundry.services.generator.sanitizers import strip_markdown_inline, trim_ellipsis


class TokenType(str, Enum):
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    LIST = "list"
    BLOCKQUOTE = "blockquote"
    CODE_BLOCK = "code_block"
    HORIZONTAL_RULE = "horizontal_rule"
    TABLE = "table"


@dataclass
class ListItem:
    content: str
    index: Optional[int] = None


@dataclass
class MarkdownToken:
    """One block-level construct. Fields not relevant to the type stay empty."""
    type: TokenType
    content: str = ""
    level: int = 0
    ordered: bool = False
    items: List[ListItem] = field(default_factory=list)
    author: Optional[str] = None
    language: Optional[str] = None
    headers: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)
    alignments: List[str] = field(default_factory=list)

    @property
    def is_list(self) -> bool:
        return self.type == TokenType.LIST

    def is_heading(self, *levels: int) -> bool:
        return self.type == TokenType.HEADING and (not levels or self.level in levels)

    def list_text(self) -> str:
        """Lowercased flattened text of all list items."""
        return " ".join(item.content.lower() for item in self.items)


# =============================================================================
# Line patterns
# =============================================================================

_HEADING = re.compile(r"^(#{1,6})\s+(.+)$")
_UNORDERED_ITEM = re.compile(r"^\s*[-*+]\s+(.+)$")
_ORDERED_ITEM = re.compile(r"^\s*(\d+)[.)]\s+(.+)$")
_HORIZONTAL_RULE = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})$")
_TABLE_SEPARATOR = re.compile(r"^[-:| ]+$")
_QUOTE_AUTHOR = re.compile(r"^(.*\S)\s+(?:—|–|--|-)\s*(\S.*)$")
_LINK = re.compile(r"(?<!!)\[([^\]]+)\]\(([^)\s]+)(?:\s+\"[^\"]*\")?\)")
_IMAGE = re.compile(r"!\[([^\]]*)\]\(([^)\s]+)(?:\s+\"[^\"]*\")?\)")

MAX_AUTHOR_CHARS = 60
MAX_AUTHOR_WORDS = 6


def _is_horizontal_rule(line: str) -> bool:
    return bool(_HORIZONTAL_RULE.match(line.strip().replace(" ", "")))


def _split_table_row(line: str) -> List[str]:
    cells = [cell.strip() for cell in line.strip().split("|")]
    if cells and cells[0] == "":
        cells = cells[1:]
    if cells and cells[-1] == "":
        cells = cells[:-1]
    return [strip_markdown_inline(cell) for cell in cells]


def _alignment(cell: str) -> str:
    cell = cell.strip()
    if cell.startswith(":") and cell.endswith(":"):
        return "center"
    if cell.endswith(":"):
        return "right"
    return "left"


def _split_author(content: str) -> Tuple[str, Optional[str]]:
    match = _QUOTE_AUTHOR.match(content)
    if not match:
        return content, None
    quote, author = match.group(1).strip(), match.group(2).strip()
    if len(author) > MAX_AUTHOR_CHARS or len(author.split()) > MAX_AUTHOR_WORDS:
        return content, None
    return quote, author


# =============================================================================
# Parser
# =============================================================================

class MarkdownParser:
    """Line-oriented Markdown tokenizer."""

    def __init__(self):
        self.lines: List[str] = []
        self.index = 0

    def parse(self, markdown: str) -> List[MarkdownToken]:
        self.lines = (markdown or "").replace("\r\n", "\n").replace("\r", "\n").split("\n")
        self.index = 0
        tokens: List[MarkdownToken] = []

        while self.index < len(self.lines):
            token = self._next_token()
            if token is not None:
                tokens.append(token)
        return tokens

    def _next_token(self) -> Optional[MarkdownToken]:
        line = self.lines[self.index]
        stripped = line.strip()

        if not stripped:
            self.index += 1
            return None
        if stripped.startswith("```"):
            return self._parse_code_block()
        if _is_horizontal_rule(line):
            self.index += 1
            return MarkdownToken(type=TokenType.HORIZONTAL_RULE)
        if self._is_table_start(self.index):
            table = self._parse_table()
            if table is not None:
                return table

        heading = _HEADING.match(stripped)
        if heading:
            self.index += 1
            content = heading.group(2).strip().rstrip("#").strip() or heading.group(2).strip()
            return MarkdownToken(type=TokenType.HEADING, level=len(heading.group(1)), content=content)

        if stripped.startswith(">"):
            return self._parse_blockquote()
        if _UNORDERED_ITEM.match(line):
            return self._parse_list(ordered=False)
        if _ORDERED_ITEM.match(line):
            return self._parse_list(ordered=True)
        return self._parse_paragraph()

    def _is_table_start(self, index: int) -> bool:
        if "|" not in self.lines[index] or index + 1 >= len(self.lines):
            return False
        separator = self.lines[index + 1].strip()
        return "-" in separator and "|" in separator and bool(_TABLE_SEPARATOR.match(separator))

    def _is_block_start(self, index: int) -> bool:
        line = self.lines[index]
        stripped = line.strip()
        return (
            not stripped
            or stripped.startswith(("```", ">"))
            or bool(_HEADING.match(stripped))
            or bool(_UNORDERED_ITEM.match(line))
            or bool(_ORDERED_ITEM.match(line))
            or _is_horizontal_rule(line)
            or self._is_table_start(index)
        )

    def _parse_code_block(self) -> MarkdownToken:
        language = self.lines[self.index].strip()[3:].strip() or None
        self.index += 1
        code: List[str] = []
        # An unterminated fence runs to the end of the document
        while self.index < len(self.lines):
            line = self.lines[self.index]
            self.index += 1
            if line.strip().startswith("```"):
                break
            code.append(line)
        return MarkdownToken(type=TokenType.CODE_BLOCK, content="\n".join(code), language=language)

    def _parse_table(self) -> Optional[MarkdownToken]:
        headers = _split_table_row(self.lines[self.index])
        if len(headers) < 2:
            return None

        separator = self.lines[self.index + 1].strip().strip("|")
        alignments = [_alignment(cell) for cell in separator.split("|")]
        self.index += 2

        rows: List[List[str]] = []
        while self.index < len(self.lines):
            line = self.lines[self.index]
            if "|" not in line or not line.strip():
                break
            row = _split_table_row(line)
            if len(row) >= 2:
                rows.append(row)
            self.index += 1

        return MarkdownToken(type=TokenType.TABLE, headers=headers, rows=rows, alignments=alignments)

    def _parse_blockquote(self) -> MarkdownToken:
        parts: List[str] = []
        while self.index < len(self.lines):
            stripped = self.lines[self.index].strip()
            if not stripped.startswith(">"):
                break
            parts.append(re.sub(r"^>\s?", "", stripped).strip())
            self.index += 1

        content = " ".join(part for part in parts if part).strip()
        quote, author = _split_author(content)
        return MarkdownToken(
            type=TokenType.BLOCKQUOTE,
            content=strip_markdown_inline(quote),
            author=strip_markdown_inline(author) if author else None,
        )

    def _parse_list(self, ordered: bool) -> MarkdownToken:
        pattern = _ORDERED_ITEM if ordered else _UNORDERED_ITEM
        items: List[ListItem] = []
        while self.index < len(self.lines):
            match = pattern.match(self.lines[self.index])
            if not match:
                break
            if ordered:
                items.append(ListItem(content=match.group(2).strip(), index=int(match.group(1))))
            else:
                items.append(ListItem(content=match.group(1).strip()))
            self.index += 1
        return MarkdownToken(type=TokenType.LIST, ordered=ordered, items=items)

    def _parse_paragraph(self) -> MarkdownToken:
        lines = [self.lines[self.index].strip()]
        self.index += 1
        while self.index < len(self.lines) and not self._is_block_start(self.index):
            lines.append(self.lines[self.index].strip())
            self.index += 1
        return MarkdownToken(type=TokenType.PARAGRAPH, content=" ".join(lines))


def parse_markdown(markdown: str) -> List[MarkdownToken]:
    """Tokenize a Markdown document."""
    return MarkdownParser().parse(markdown)


def extract_links(text: str) -> List[Tuple[str, str]]:
    """(text, url) for each inline link, images excluded."""
    return [(m.group(1), m.group(2)) for m in _LINK.finditer(text or "")]


def extract_images(text: str) -> List[Tuple[str, str]]:
    """(alt, url) for each inline image."""
    return [(m.group(1), m.group(2)) for m in _IMAGE.finditer(text or "")]


# =============================================================================
# Sections
# =============================================================================

DEFAULT_SECTION_HEADING = "Overview"
SECTION_QUOTE_CHARS = 220
SECTION_ITEM_CHARS = 160
SECTION_PARAGRAPH_CHARS = 220


def build_sections(tokens: List[MarkdownToken]) -> List[MarkdownSection]:
    """
    Group tokens under their nearest heading.

    Content before the first heading lands in a default "Overview" section.
    Each section keeps its own token window for classification.
    """
    sections: List[MarkdownSection] = []
    current = MarkdownSection(heading=DEFAULT_SECTION_HEADING, level=2)

    def flush():
        if current.has_content() or current.heading != DEFAULT_SECTION_HEADING:
            sections.append(current)

    for token in tokens:
        if token.type == TokenType.HEADING:
            flush()
            current = MarkdownSection(
                heading=trim_ellipsis(strip_markdown_inline(token.content), 120),
                level=token.level,
            )
            current.tokens.append(token)
            continue

        current.tokens.append(token)
        if token.type == TokenType.LIST:
            target = current.ordered if token.ordered else current.bullets
            for item in token.items:
                text = strip_markdown_inline(item.content)
                if text:
                    target.append(trim_ellipsis(text, SECTION_ITEM_CHARS))
        elif token.type == TokenType.PARAGRAPH:
            text = strip_markdown_inline(token.content)
            if text:
                current.paragraphs.append(trim_ellipsis(text, SECTION_PARAGRAPH_CHARS))
        elif token.type == TokenType.BLOCKQUOTE:
            if token.content:
                current.quotes.append((trim_ellipsis(token.content, SECTION_QUOTE_CHARS), token.author))
        elif token.type == TokenType.TABLE:
            if not current.table_rows:
                current.table_rows.append(list(token.headers))
            current.table_rows.extend(list(row) for row in token.rows)

    flush()
    return sections
