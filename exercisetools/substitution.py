"""
Rewriting a learner submission for one scenario.

The learner's source is never modified in place: every scenario gets
its own freshly substituted copy of the lines, so scenarios can be run
in any order, or in parallel.
"""
import logging

from .errors import LockedLineViolation, SubmissionFormatError
from .exercise import ExerciseDefinition, Scenario, Submission

log = logging.getLogger(__name__)


def check_submission_format(exercise: ExerciseDefinition, submission: Submission) -> None:
    """Check that every fixed line of the exercise still has a line to
    sit on in the submission.

    Raises:
        SubmissionFormatError: if the submission is too short.
    """
    if not exercise.fixed_line_indices:
        return
    needed = max(exercise.fixed_line_indices) + 1
    have = len(submission.source_lines)
    if have < needed:
        raise SubmissionFormatError(
            f'submission for {exercise.id} has {have} lines, but line {needed} of the template is readonly'
        )


def check_locked_lines(exercise: ExerciseDefinition, submission: Submission) -> None:
    """Check that the learner left all fixed lines untouched.

    Raises:
        LockedLineViolation: for the first fixed line that differs from
            the template.
    """
    check_submission_format(exercise, submission)
    for index in sorted(exercise.fixed_line_indices):
        expected = exercise.template_line(index)
        actual = submission.source_lines[index]
        if actual != expected:
            raise LockedLineViolation(index, expected, actual)


def substitute(exercise: ExerciseDefinition, submission: Submission, scenario: Scenario) -> list[str]:
    """Produce the program to run for a scenario.

    Returns:
        list of str, the submission's lines with every line in
        scenario.replacement_by_line replaced by its literal text.
    """
    check_locked_lines(exercise, submission)
    lines = list(submission.source_lines)
    for index, text in scenario.replacement_by_line.items():
        lines[index] = text
    log.debug('substituted lines %s for %s', sorted(scenario.replacement_by_line), exercise.id)
    return lines
