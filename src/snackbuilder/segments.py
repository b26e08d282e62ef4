# src/snackbuilder/segments.py
from __future__ import annotations

from dataclasses import dataclass

from snackbuilder.scanner import Marker, MarkerKind

FALLBACK_PATH = "App.js"


@dataclass(frozen=True)
class Segment:
    path: str
    kind: MarkerKind
    # body span; the header line itself is never inside [start, end)
    start: int
    end: int
    is_merge: bool = False
    # the no-marker App.js segment keeps the text verbatim
    fallback: bool = False


def _rank(m: Marker) -> tuple[int, int]:
    return m.priority, m.order


def dedupe_markers(markers: list[Marker]) -> list[Marker]:
    """
    Keep one marker per (offset, path): the best-ranked recognizer wins.
    Result keeps first-encounter order of the surviving keys.
    """
    best: dict[tuple[int, str], Marker] = {}
    for m in markers:
        key = (m.offset, m.path)
        cur = best.get(key)
        if cur is None or _rank(m) < _rank(cur):
            best[key] = m
    return list(best.values())


def order_markers(markers: list[Marker]) -> list[Marker]:
    return sorted(markers, key=lambda m: (m.offset, m.priority, m.order))


def _body_start(text: str, offset: int) -> int:
    nl = text.find("\n", offset)
    # header on the last line without a newline: empty body
    return nl + 1 if nl >= 0 else len(text)


def build_segments(text: str, markers: list[Marker]) -> list[Segment]:
    """
    Carve normalized text into contiguous body ranges, one per surviving marker.

    Without markers the whole text becomes a single App.js segment.
    """
    ordered = order_markers(dedupe_markers(markers))
    if not ordered:
        return [Segment(path=FALLBACK_PATH, kind="FILE", start=0, end=len(text), fallback=True)]

    segs: list[Segment] = []
    for i, cur in enumerate(ordered):
        end = ordered[i + 1].offset if i + 1 < len(ordered) else len(text)
        start = min(_body_start(text, cur.offset), end)
        segs.append(Segment(path=cur.path, kind=cur.kind, start=start, end=end, is_merge=cur.is_merge))
    return segs


def segment_body(text: str, seg: Segment) -> str:
    """Body text with exactly one immediately-following blank line removed."""
    body = text[seg.start : seg.end]
    if not seg.fallback and body.startswith("\n"):
        body = body[1:]
    return body
