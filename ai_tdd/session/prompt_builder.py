"""Prompt text used to frame each message kind in the conversation."""
from __future__ import annotations

import re
from typing import Iterable, Optional

from ai_tdd.testing.frameworks import LanguageProfile
from ai_tdd.testing.results import TestResult

ROLE_PROMPT = """You are a Senior Software Engineer that has been tasked with fixing failing tests in a codebase.
I will provide you with the test file content, and you will need to update the implementation file to make the tests pass.
If the tests fail, I will provide you with the test output and error message.

When you see a test failing, you fix it, every time, first try

You are an engineer that only responds with code. No docs. No comments. Only code.

You don't respond with Markdown EVER.  Its ONLY code.
No XML
No Markdown

As a Sr Engineer you pay special attention to the errors and the type mismatches that can arise in the code."""

_LANGUAGE_HINTS = {
    "JavaScript": "All functions used in tests are imported without default imports.",
    "TypeScript": "All functions used in tests are imported without default imports.",
    "Python": "Functions and classes used in tests are imported from the implementation module by name.",
}

FIRST_TEST_FILE_PREFIX = "This is the test file content"
UPDATED_TEST_FILE_PREFIX = "I have updated the test file content. Now it looks like this:"
REQUIREMENTS_PREFIX = "The test file declares the following requirements:"
IMPLEMENTATION_PREFIX = "This is the implementation file content:"
TESTS_PASSED = "All tests passed"
TESTS_FAILED_PREFIX = "Some tests failed:"

_CODE_FENCE = re.compile(r"^\s*```[\w.+-]*[ \t]*\n(?P<code>.*?)\n?```\s*$", re.DOTALL)


def build_system_prompt(profile: LanguageProfile, instructions: Optional[str] = None) -> str:
    sections = [
        ROLE_PROMPT,
        f"The code will be in {profile.language} and the tests are running using the "
        f"{profile.test_runner} test runner.",
    ]
    hint = _LANGUAGE_HINTS.get(profile.language)
    if hint:
        sections.append(hint)
    if instructions and instructions.strip():
        sections.append(
            "You should also take into consideration the following inputs:\n"
            f"<inputs>\n{instructions.strip()}\n</inputs>"
        )
    return "\n".join(sections)


def format_test_file(clean_body: str, *, first: bool) -> str:
    prefix = FIRST_TEST_FILE_PREFIX if first else UPDATED_TEST_FILE_PREFIX
    return f"{prefix}<TEST_FILE_CONTENT>{clean_body}</TEST_FILE_CONTENT>"


def format_requirements(requirements: Iterable[str]) -> str:
    lines = "\n".join(f"- {item}" for item in requirements)
    return f"{REQUIREMENTS_PREFIX}\n<REQUIREMENTS>\n{lines}\n</REQUIREMENTS>"


def format_implementation(code: str) -> str:
    return f"{IMPLEMENTATION_PREFIX} <IMPLEMENTATION_FILE_CONTENT>{code}</IMPLEMENTATION_FILE_CONTENT>"


def format_test_result(result: TestResult) -> str:
    if result.success:
        return TESTS_PASSED
    return (
        f"{TESTS_FAILED_PREFIX} <FAILED_TESTS_OUTPUT>{result.output}</FAILED_TESTS_OUTPUT> "
        f"<ERROR>{result.error or ''}</ERROR>"
    )


def strip_code_fences(text: str) -> str:
    """Unwrap a completion that arrived as a single fenced Markdown block."""
    match = _CODE_FENCE.match(text)
    if match is None:
        return text
    return match.group("code") + "\n"


__all__ = [
    "ROLE_PROMPT",
    "TESTS_PASSED",
    "build_system_prompt",
    "format_implementation",
    "format_requirements",
    "format_test_file",
    "format_test_result",
    "strip_code_fences",
]
