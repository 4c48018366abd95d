"""Comparison of captured output with the expected transcript.

Output formatting (line breaks, quoting, bracket syntax) is part of what
an exercise checks, so the comparison is exact: no trimming and no
whitespace normalisation.
"""
import difflib
from dataclasses import dataclass

from .errors import OutputMismatch

NO_NEWLINE = '\\ No newline at end of output\n'


@dataclass(frozen=True)
class Comparison:
    passed: bool
    actual: str
    expected: str
    diff: str

    def check(self) -> None:
        if not self.passed:
            raise OutputMismatch(self.actual, self.expected, self.diff)


def _diff_lines(text: str) -> list[str]:
    lines = text.splitlines(keepends=True)
    if lines and not lines[-1].endswith('\n'):
        lines[-1] += '\n'
        lines.append(NO_NEWLINE)
    return lines


def output_diff(actual: str, expected: str) -> str:
    """Unified diff from the expected to the actual output."""
    return ''.join(difflib.unified_diff(_diff_lines(expected), _diff_lines(actual),
                                        fromfile='expected', tofile='actual'))


def compare(actual: str, expected: str) -> Comparison:
    if actual == expected:
        return Comparison(passed=True, actual=actual, expected=expected, diff='')
    return Comparison(passed=False, actual=actual, expected=expected, diff=output_diff(actual, expected))
