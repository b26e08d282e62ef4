# src/snackbuilder/parser.py
from __future__ import annotations

import logging

from snackbuilder.models import FileEntry, FileMap
from snackbuilder.scanner import normalize_newlines, scan_markers
from snackbuilder.segments import Segment, build_segments, segment_body
from snackbuilder.utils import assert_safe_relpath

logger = logging.getLogger(__name__)


def assemble_file_map(text: str, segments: list[Segment]) -> FileMap:
    """
    Turn segments into a FileMap.

    Contract:
    - Every path is validated before anything is stored; one illegal path aborts
      the whole call (ValidationError), no partial map escapes.
    - ASSET bodies are stripped (base64 expected, never decoded here).
    - Same path twice: the later segment replaces the earlier one. "(merge)"
      headers do not change that; content is never concatenated.
    """
    for seg in segments:
        assert_safe_relpath(seg.path)

    files: FileMap = {}
    for seg in segments:
        body = segment_body(text, seg)
        if seg.kind == "ASSET":
            files[seg.path] = FileEntry.asset(body.strip())
        else:
            files[seg.path] = FileEntry.code(body)
    return files


def parse(raw_text: str) -> FileMap:
    """Split an LLM transcript into a map of relative path -> file entry."""
    text = normalize_newlines(raw_text)
    segments = build_segments(text, scan_markers(text))
    files = assemble_file_map(text, segments)
    logger.debug("parsed files: %s", list(files))
    return files


# Name used by the preview front end.
parse_transcript = parse
