"""Requirement marker comments embedded in test files.

A line such as ``// REQUIREMENT: rejects negative amounts`` (or
``# REQUIREMENT: ...`` in Python tests) carries a natural-language constraint
for the model. Markers are extracted in source order and stripped from the
test body before it is sent.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import List

from ai_tdd.testing.frameworks import LanguageProfile

MARKER_KEYWORD = "REQUIREMENT:"
MARKER_PATTERN = re.compile(r"(?://|#)[ \t]*REQUIREMENT:[ \t]*(?P<text>.*?)[ \t]*$")


def extract_requirements(code: str) -> List[str]:
    """Return requirement texts in order of appearance."""
    requirements: List[str] = []
    for line in code.splitlines():
        match = MARKER_PATTERN.search(line)
        if match and match.group("text"):
            requirements.append(match.group("text"))
    return requirements


def strip_requirements(code: str) -> str:
    """Remove marker comments; lines holding only a marker are dropped."""
    kept: List[str] = []
    for line in code.splitlines(keepends=True):
        body = line.rstrip("\r\n")
        match = MARKER_PATTERN.search(body)
        if match is None:
            kept.append(line)
            continue
        prefix = body[: match.start()].rstrip()
        if prefix:
            kept.append(prefix + line[len(body):])
    return "".join(kept)


def requirement_comment(text: str, profile: LanguageProfile) -> str:
    return f"{profile.comment_prefix} {MARKER_KEYWORD} {text.strip()}"


def append_requirement(test_file: Path, text: str, profile: LanguageProfile) -> str:
    """Append a marker line to ``test_file`` and return the line written."""
    if not text.strip():
        raise ValueError("Requirement text must not be empty")
    line = requirement_comment(text, profile)
    existing = test_file.read_text(encoding="utf-8")
    separator = "" if not existing or existing.endswith("\n") else "\n"
    test_file.write_text(f"{existing}{separator}\n{line}\n", encoding="utf-8")
    return line


__all__ = [
    "MARKER_PATTERN",
    "append_requirement",
    "extract_requirements",
    "requirement_comment",
    "strip_requirements",
]
