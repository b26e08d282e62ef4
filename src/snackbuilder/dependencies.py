# src/snackbuilder/dependencies.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Literal, Mapping

from snackbuilder.models import DependencyMap, FileMap

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------------------
# Expo SDK 53 compatibility table. Only names listed here are ever pinned.
# --------------------------------------------------------------------------------------
EXPO53_COMPAT: dict[str, str] = {
    # Expo / routing
    "expo-router": "~3.5.22",
    "expo-linking": "~6.3.1",
    "expo-constants": "~16.0.2",
    "expo-status-bar": "~2.0.0",
    # navigation/runtime
    "react-native-gesture-handler": "~2.16.2",
    "react-native-reanimated": "~3.16.1",
    "react-native-screens": "~4.9.0",
    "react-native-safe-area-context": "4.10.5",
    # common UI / utils
    "react-native-svg": "15.2.0",
    "react-native-paper": "^5.12.5",
    "@tanstack/react-query": "^5.51.0",
    "@nkzw/create-context-hook": "^1.1.0",
    "@react-native-async-storage/async-storage": "~1.23.1",
    "lucide-react-native": "^0.468.0",
    # react-navigation used directly
    "@react-navigation/native": "^6.1.18",
    "@react-navigation/native-stack": "^6.10.0",
    "@react-navigation/bottom-tabs": "^6.12.1",
}

# Provided by the Snack runtime for the selected SDK.
DO_NOT_INSTALL: frozenset[str] = frozenset(
    {
        "react",
        "react-native",
        "react-dom",
        "expo",
        "expo-modules-core",
    }
)

ROUTER_PACKAGE = "expo-router"

ROUTER_BASELINE: frozenset[str] = frozenset(
    {
        ROUTER_PACKAGE,
        "react-native-gesture-handler",
        "react-native-reanimated",
        "react-native-screens",
        "react-native-safe-area-context",
    }
)

# Libraries mostly imported through internal subpaths.
DEEP_IMPORT_PACKAGES: tuple[str, ...] = (
    "react-native-reanimated",
    "react-native-gesture-handler",
    "react-native-svg",
)

LOCAL_ALIAS_PREFIXES: tuple[str, ...] = ("@/",)

LEGACY_ENTRY = "App.js"
ROUTER_DIR = "app/"

UnknownPackagePolicy = Literal["omit", "latest"]
UNPINNED_VERSION = "latest"

# --------------------------------------------------------------------------------------
# JS/TS import extraction (regex over comment-stripped source; deterministic)
# --------------------------------------------------------------------------------------

# Statements may share a line: "import a from 'a'; import b from 'b'".
_STMT_START = r"(?:^|(?<=[;{}]))\s*"

JS_IMPORT_EXPORT_FROM_RE = re.compile(
    r"""(?mx)
    """ + _STMT_START + r"""
    (?:import|export)\s+
    (?:type\s+)?                 # "import type ..." / "export type ..."
    [^;'"]*?                     # bindings: default, {named}, * as ns (may be multiline)
    \bfrom\s*
    ["'](?P<spec>[^"']+)["']
    """
)

JS_IMPORT_SIDE_EFFECT_RE = re.compile(r"""(?m)""" + _STMT_START + r"""import\s*["'](?P<spec>[^"']+)["']""")
JS_DYNAMIC_IMPORT_RE = re.compile(r"""\bimport\s*\(\s*["'](?P<spec>[^"']+)["']\s*\)""")
JS_REQUIRE_RE = re.compile(r"""\brequire\s*\(\s*["'](?P<spec>[^"']+)["']\s*\)""")

IMPORT_PATTERNS = (
    JS_IMPORT_EXPORT_FROM_RE,
    JS_IMPORT_SIDE_EFFECT_RE,
    JS_DYNAMIC_IMPORT_RE,
    JS_REQUIRE_RE,
)

# A "/" after one of these (or at the start) opens a regex literal, otherwise it divides.
_REGEX_PRECEDERS = frozenset("(,=:[!&|?{};+-*%<>~^")
_REGEX_KEYWORD_BEFORE_RE = re.compile(r"\b(?:return|typeof|case|do|else|in|of|void|yield|await)\s*$")


def _last_code_char(out: list[str]) -> str:
    for chunk in reversed(out):
        s = chunk.rstrip()
        if s:
            return s[-1]
    return ""


def _regex_literal_end(text: str, i: int) -> int:
    """Index just past the /.../flags literal opening at i, or -1 if the line ends first."""
    n = len(text)
    j = i + 1
    in_class = False
    while j < n:
        ch = text[j]
        if ch == "\n":
            return -1
        if ch == "\\":
            j += 2
            continue
        if in_class:
            if ch == "]":
                in_class = False
        elif ch == "[":
            in_class = True
        elif ch == "/":
            j += 1
            while j < n and (text[j].isalnum() or text[j] == "_"):
                j += 1
            return j
        j += 1
    return -1


def strip_js_ts_comments(text: str) -> str:
    """
    Blank out // and /* */ comments, leaving string literals, regex literals and newlines intact.

    Regex literals are told apart from division by the preceding token; quotes inside
    them (/['"]/) therefore never open a string.
    """
    out: list[str] = []
    i = 0
    n = len(text)
    quote = ""  # active string delimiter, if any

    while i < n:
        c = text[i]
        nxt = text[i + 1] if i + 1 < n else ""

        if quote:
            out.append(c)
            if c == "\\" and nxt:
                out.append(nxt)
                i += 2
                continue
            if c == quote:
                quote = ""
            i += 1
            continue

        if c in ("'", '"', "`"):
            quote = c
            out.append(c)
            i += 1
            continue

        if c == "/" and nxt == "/":
            end = text.find("\n", i)
            end = n if end < 0 else end
            out.append(" " * (end - i))
            i = end
            continue

        if c == "/" and nxt == "*":
            end = text.find("*/", i + 2)
            end = n if end < 0 else end + 2
            out.append("".join("\n" if ch == "\n" else " " for ch in text[i:end]))
            i = end
            continue

        if c == "/":
            prev = _last_code_char(out)
            if not prev or prev in _REGEX_PRECEDERS or _REGEX_KEYWORD_BEFORE_RE.search(text[max(0, i - 12) : i]):
                end = _regex_literal_end(text, i)
                if end > 0:
                    out.append(text[i:end])
                    i = end
                    continue

        out.append(c)
        i += 1

    return "".join(out)


def extract_import_specifiers(source: str) -> list[str]:
    """Every quoted module specifier in import/export-from/require/import() forms."""
    code = strip_js_ts_comments(source)
    hits: list[tuple[int, str]] = []
    for rx in IMPORT_PATTERNS:
        for m in rx.finditer(code):
            hits.append((m.start("spec"), m.group("spec")))
    # one specifier per source position, in source order
    return [spec for _, spec in sorted(set(hits))]


def root_package(specifier: str) -> str | None:
    """
    "lodash/fp" -> "lodash", "@scope/pkg/x" -> "@scope/pkg"; local and aliased paths -> None.
    """
    spec = (specifier or "").strip()
    if not spec or spec.startswith((".", "/")) or spec.startswith(LOCAL_ALIAS_PREFIXES):
        return None
    parts = spec.split("/")
    if spec.startswith("@"):
        return "/".join(parts[:2])
    return parts[0]


def uses_router_layout(files: Iterable[str]) -> bool:
    return any(p == LEGACY_ENTRY or p.startswith(ROUTER_DIR) for p in files)


def find_packages(
        files: FileMap,
        exclusion_set: Iterable[str] = DO_NOT_INSTALL,
        baseline_set: Iterable[str] = ROUTER_BASELINE,
) -> set[str]:
    excluded = set(exclusion_set)
    found: set[str] = set()

    for path in sorted(files):
        entry = files[path]
        if entry.kind != "CODE":
            continue
        for spec in extract_import_specifiers(entry.contents):
            pkg = root_package(spec)
            if not pkg or pkg in excluded:
                continue
            found.add(pkg)
            for deep in DEEP_IMPORT_PACKAGES:
                if deep in spec:
                    found.add(deep)

    if uses_router_layout(files):
        found.update(baseline_set)
        # the scaffold entry always references the router
        found.add(ROUTER_PACKAGE)

    return found


@dataclass(frozen=True)
class DependencyReport:
    found: frozenset[str]
    dependencies: DependencyMap = field(default_factory=dict)
    # names not in the compatibility table, sorted
    unknown: tuple[str, ...] = ()


def analyze_dependencies(
        files: FileMap,
        compat_table: Mapping[str, str] = EXPO53_COMPAT,
        exclusion_set: Iterable[str] = DO_NOT_INSTALL,
        baseline_set: Iterable[str] = ROUTER_BASELINE,
        *,
        unknown_policy: UnknownPackagePolicy = "omit",
) -> DependencyReport:
    found = find_packages(files, exclusion_set, baseline_set)

    deps: DependencyMap = {}
    unknown: list[str] = []
    for name in sorted(found):
        version = compat_table.get(name)
        if version:
            deps[name] = version
            continue
        unknown.append(name)
        if unknown_policy == "latest":
            deps[name] = UNPINNED_VERSION

    if unknown:
        if unknown_policy == "omit":
            logger.warning("omitted unknown packages: %s", unknown)
        else:
            logger.warning("unpinned unknown packages (%s): %s", UNPINNED_VERSION, unknown)
    logger.debug("detected packages: %s", sorted(found))
    logger.debug("using dependencies: %s", deps)

    return DependencyReport(found=frozenset(found), dependencies=deps, unknown=tuple(unknown))


def derive_dependencies(
        files: FileMap,
        compat_table: Mapping[str, str] = EXPO53_COMPAT,
        exclusion_set: Iterable[str] = DO_NOT_INSTALL,
        baseline_set: Iterable[str] = ROUTER_BASELINE,
        *,
        unknown_policy: UnknownPackagePolicy = "omit",
) -> DependencyMap:
    """
    Map every package the file map needs to a pinned version from `compat_table`.

    Unknown packages are omitted (and logged) by default: a missing module fails
    loudly, an incompatible native module does not.
    """
    return analyze_dependencies(
        files, compat_table, exclusion_set, baseline_set, unknown_policy=unknown_policy
    ).dependencies


detect_dependencies = derive_dependencies
