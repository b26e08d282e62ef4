# src/snackbuilder/scanner.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Literal

# --------------------------------------------------------------------------------------
# Marker scanning: three header grammars, matched line by line.
#
#   1) comment header:  // path/to/file
#   2) block header:    === FILE: path ===   /   === ASSET: path;mime=... ===
#                       (optional "(merge)" annotation; mime is parsed and dropped)
#   3) bare path:       app/(tabs)/orders/_layout.tsx   (whole line, has an extension)
#
# Several recognizers may fire at the same offset. Which one wins is decided by
# RECOGNIZER_PRIORITY, never by scan order.
# --------------------------------------------------------------------------------------

MarkerKind = Literal["FILE", "ASSET"]

BLOCK_HEADER = "block_header"
COMMENT_HEADER = "comment_header"
BARE_PATH = "bare_path"

# Lower rank wins.
RECOGNIZER_PRIORITY: dict[str, int] = {
    BLOCK_HEADER: 0,
    COMMENT_HEADER: 1,
    BARE_PATH: 2,
}

COMMENT_HEADER_RE = re.compile(r"//[ \t]+(?P<path>\S.*?)\s*")

BLOCK_HEADER_RE = re.compile(
    r"""(?x)
    ===\s*
    (?P<kind>FILE|ASSET):\s*
    (?P<path>[^=]+?)
    (?:\s*\(merge\))?
    (?:;mime=.+)?
    \s*===\s*
    """
)

BARE_PATH_RE = re.compile(r"[A-Za-z0-9_@./()\[\]-]+?\.[A-Za-z0-9]+")

MERGE_ANNOTATION = "(merge)"


@dataclass(frozen=True)
class Marker:
    kind: MarkerKind
    path: str
    offset: int
    recognizer: str
    is_merge: bool = False
    # encounter index across the whole scan; last-resort tie-break
    order: int = 0

    @property
    def priority(self) -> int:
        return RECOGNIZER_PRIORITY[self.recognizer]


def normalize_newlines(raw: str) -> str:
    return raw.replace("\r\n", "\n")


def iter_lines(text: str) -> Iterator[tuple[int, str]]:
    """Yield (offset_of_line_start, line_without_newline)."""
    offset = 0
    for line in text.split("\n"):
        yield offset, line
        offset += len(line) + 1


def match_comment_header(line: str) -> tuple[MarkerKind, str, bool] | None:
    m = COMMENT_HEADER_RE.fullmatch(line)
    if not m:
        return None
    return "FILE", m.group("path").strip(), False


def match_block_header(line: str) -> tuple[MarkerKind, str, bool] | None:
    m = BLOCK_HEADER_RE.fullmatch(line)
    if not m:
        return None
    kind: MarkerKind = "ASSET" if m.group("kind") == "ASSET" else "FILE"
    return kind, m.group("path").strip(), MERGE_ANNOTATION in line


def match_bare_path(line: str) -> tuple[MarkerKind, str, bool] | None:
    if not BARE_PATH_RE.fullmatch(line):
        return None
    return "FILE", line, False


# Scan order per line; this is also the encounter order used as a tie-break.
RECOGNIZERS = (
    (COMMENT_HEADER, match_comment_header),
    (BLOCK_HEADER, match_block_header),
    (BARE_PATH, match_bare_path),
)


def scan_markers(text: str) -> list[Marker]:
    """
    Run every recognizer over every line of already-normalized text.

    Returns markers in encounter order; no de-duplication happens here.
    """
    markers: list[Marker] = []
    for offset, line in iter_lines(text):
        for recognizer, match in RECOGNIZERS:
            hit = match(line)
            if hit is None:
                continue
            kind, path, is_merge = hit
            if not path:
                continue
            markers.append(
                Marker(
                    kind=kind,
                    path=path,
                    offset=offset,
                    recognizer=recognizer,
                    is_merge=is_merge,
                    order=len(markers),
                )
            )
    return markers
