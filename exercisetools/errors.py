"""Exceptions raised while grading an exercise.

Only MalformedExercise and SubmissionFormatError escape a grading
session; everything else is turned into a failed verdict for the
scenario it happened in.
"""


class GradingError(Exception):
    pass


class MalformedExercise(GradingError):
    """The exercise definition is internally inconsistent.  This is an
    authoring defect and is reported to the content system, never to
    the learner."""


class SubmissionFormatError(GradingError):
    """The submission does not have the shape of the exercise template
    (e.g. a fixed line was deleted)."""


class LockedLineViolation(GradingError):
    """The learner edited a line they were told not to touch."""

    def __init__(self, index: int, expected: str, actual: str) -> None:
        super().__init__(f'line {index + 1} must not be changed: expected {expected!r} but found {actual!r}')
        self.index = index
        self.expected = expected
        self.actual = actual


class ExecutionTimeout(GradingError):
    def __init__(self, timelim: float) -> None:
        super().__init__(f'program did not finish within {timelim:g} seconds')
        self.timelim = timelim


class ExecutionCrash(GradingError):
    def __init__(self, exit_code: int | None, stderr: str) -> None:
        super().__init__(f'program terminated abnormally (exit code {exit_code})')
        self.exit_code = exit_code
        self.stderr = stderr


class OutputMismatch(GradingError):
    def __init__(self, actual: str, expected: str, diff: str) -> None:
        super().__init__('output does not match the expected output')
        self.actual = actual
        self.expected = expected
        self.diff = diff
