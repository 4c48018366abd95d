"""
Grading of one learner submission against all scenarios of an exercise.

Every scenario moves through the states

    PENDING -> SUBSTITUTED -> EXECUTED -> COMPARED -> PASSED | FAILED

with two shortcuts to FAILED: from SUBSTITUTED when the learner changed a
readonly line (or the sandbox could not run the program), and from
EXECUTED when the program timed out or crashed.  Errors inside a
scenario become a failed Verdict for that scenario only; sibling
scenarios still run.
"""
from __future__ import annotations

import enum
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Literal, Pattern

from . import config
from . import languages
from .compare import compare
from .errors import ExecutionCrash, ExecutionTimeout, LockedLineViolation, MalformedExercise, OutputMismatch
from .exercise import ExerciseDefinition, Submission
from .run import ProgramError, Sandbox
from .substitution import check_submission_format, substitute

log = logging.getLogger(__name__)

Outcome = Literal['AC', 'WA', 'TLE', 'RTE', 'LLV', 'JE']

# What the learner is told.  Sandbox internals never show up here.
MESSAGES: dict[str, str] = {
    'AC': 'your program produced the expected output',
    'WA': 'your program did not produce the expected output',
    'TLE': 'your program did not produce the expected output in time',
    'RTE': 'your program exited unexpectedly',
    'LLV': 'a readonly line of the exercise was changed',
    'JE': 'the grader could not run your program, please try again later',
}


@dataclass(frozen=True)
class Verdict:
    scenario_id: str
    outcome: Outcome
    expected_output: str
    actual_output: str | None = None
    additional_info: str | None = None
    runtime: float | None = None
    diagnostic: str = field(init=False, default='')

    def __post_init__(self) -> None:
        object.__setattr__(self, 'diagnostic', MESSAGES[self.outcome])

    @property
    def passed(self) -> bool:
        return self.outcome == 'AC'

    def as_dict(self) -> dict[str, Any]:
        return {
            'scenario': self.scenario_id,
            'passed': self.passed,
            'outcome': self.outcome,
            'diagnostic': self.diagnostic,
            'expected_output': self.expected_output,
            'actual_output': self.actual_output,
            'additional_info': self.additional_info,
            'runtime': self.runtime,
        }

    def __str__(self) -> str:
        details = [f'scenario: {self.scenario_id}']
        if self.runtime is not None:
            details.append(f'time: {self.runtime:.2f}s')
        return f'{self.outcome} [{", ".join(details)}]'


class ScenarioState(enum.Enum):
    PENDING = 'pending'
    SUBSTITUTED = 'substituted'
    EXECUTED = 'executed'
    COMPARED = 'compared'
    PASSED = 'passed'
    FAILED = 'failed'


TRANSITIONS: dict[ScenarioState, set[ScenarioState]] = {
    ScenarioState.PENDING: {ScenarioState.SUBSTITUTED},
    ScenarioState.SUBSTITUTED: {ScenarioState.EXECUTED, ScenarioState.FAILED},
    ScenarioState.EXECUTED: {ScenarioState.COMPARED, ScenarioState.FAILED},
    ScenarioState.COMPARED: {ScenarioState.PASSED, ScenarioState.FAILED},
    ScenarioState.PASSED: set(),
    ScenarioState.FAILED: set(),
}


class ScenarioRun:
    """A single, single-use run of one scenario."""

    def __init__(self, session: GradingSession, pos: int) -> None:
        self._session = session
        self.scenario = session.exercise.scenarios[pos]
        self.scenario_id = session.exercise.scenario_id(pos)
        self.state = ScenarioState.PENDING
        self.log = log.getChild(self.scenario_id)

    def _advance(self, state: ScenarioState) -> None:
        assert state in TRANSITIONS[self.state], f'illegal transition {self.state.name} -> {state.name}'
        self.log.debug('%s -> %s', self.state.name, state.name)
        self.state = state

    def _fail(self, outcome: Outcome, **kwargs) -> Verdict:
        self._advance(ScenarioState.FAILED)
        return Verdict(self.scenario_id, outcome, self.scenario.expected_output, **kwargs)

    def run(self, submission: Submission) -> Verdict:
        session = self._session
        violation = None
        try:
            lines = substitute(session.exercise, submission, self.scenario)
        except LockedLineViolation as e:
            violation = e
        self._advance(ScenarioState.SUBSTITUTED)
        if violation is not None:
            return self._fail('LLV', additional_info=str(violation))

        try:
            result = session.sandbox.execute(lines, session.language, timelim=session.timelim, memlim=session.memlim)
        except ProgramError as e:
            self.log.error(f'Sandbox failed for {session.exercise.id}: {e}')
            return self._fail('JE')
        self._advance(ScenarioState.EXECUTED)

        try:
            result.check(session.timelim)
        except ExecutionTimeout as e:
            return self._fail('TLE', actual_output=result.stdout, additional_info=str(e), runtime=result.runtime)
        except ExecutionCrash as e:
            return self._fail('RTE', actual_output=result.stdout, additional_info=e.stderr, runtime=result.runtime)

        comparison = compare(result.stdout, self.scenario.expected_output)
        self._advance(ScenarioState.COMPARED)
        try:
            comparison.check()
        except OutputMismatch as e:
            return self._fail('WA', actual_output=e.actual, additional_info=e.diff, runtime=result.runtime)

        self._advance(ScenarioState.PASSED)
        return Verdict(self.scenario_id, 'AC', self.scenario.expected_output,
                       actual_output=result.stdout, runtime=result.runtime)


def append_additional_info(msg: str, additional_info: str | None, max_additional_info: int) -> str:
    if additional_info is None or max_additional_info <= 0:
        return msg
    additional_info = additional_info.rstrip()
    if not additional_info:
        return msg
    lines = additional_info.split('\n')
    if len(lines) == 1:
        return f'{msg} ({lines[0]})'
    if len(lines) > max_additional_info:
        lines = lines[:max_additional_info] + [f'[.....truncated to {max_additional_info} lines.....]']

    return f'{msg}:\n' + '\n'.join(' ' * 8 + line for line in lines)


@dataclass(frozen=True)
class GradeReport:
    exercise_id: str
    verdicts: tuple[Verdict, ...]
    max_additional_info: int = 15

    @property
    def total(self) -> int:
        return len(self.verdicts)

    @property
    def passed(self) -> int:
        return sum(1 for verdict in self.verdicts if verdict.passed)

    @property
    def score(self) -> int:
        return self.passed

    @property
    def all_passed(self) -> bool:
        return self.passed == self.total

    def by_scenario(self) -> dict[str, Verdict]:
        return {verdict.scenario_id: verdict for verdict in self.verdicts}

    def as_dict(self) -> dict[str, Any]:
        return {
            'exercise': self.exercise_id,
            'passed': self.passed,
            'total': self.total,
            'verdicts': [verdict.as_dict() for verdict in self.verdicts],
        }

    def __str__(self) -> str:
        lines = []
        for verdict in self.verdicts:
            msg = f'{verdict}: {verdict.diagnostic}'
            if not verdict.passed:
                msg = append_additional_info(msg, verdict.additional_info, self.max_additional_info)
            lines.append(msg)
        lines.append(f'{self.exercise_id}: {self.passed}/{self.total} scenarios passed')
        return '\n'.join(lines)


def _first_set(*values: Any) -> Any:
    return next(value for value in values if value is not None)


class GradingSession:
    """Runs the submit -> substitute -> execute -> compare pipeline for
    every scenario of an exercise."""

    def __init__(
        self,
        exercise: ExerciseDefinition,
        language_config: languages.Languages | None = None,
        threads: int | None = None,
        timelim: float | None = None,
        memlim: int | None = None,
        sandbox: Sandbox | None = None,
        language: str | None = None,
        scenario_filter: Pattern[str] | None = None,
    ) -> None:
        """
        Args:
            exercise: the exercise to grade
            language_config: language table (ignored if sandbox is given)
            threads: number of scenarios to run in parallel
            timelim: wall-clock budget per scenario, overriding the
                exercise's own time_limit
            memlim: memory limit in MB
            sandbox: sandbox to run programs in
            language: language id, for exercises that do not name one
            scenario_filter: only grade scenarios whose id matches

        Raises:
            MalformedExercise: if the exercise's language is missing or
                unknown
            ValueError: if a limit or the number of threads is not
                positive
        """
        grading_config = config.load_grading_config()
        self.exercise = exercise
        self.sandbox = sandbox if sandbox is not None else Sandbox(language_config)
        self.language = language or exercise.language
        if self.language is None:
            raise MalformedExercise(f'exercise {exercise.id} does not specify a language')
        if self.sandbox.language_config.get(self.language) is None:
            raise MalformedExercise(f'exercise {exercise.id} uses unknown language {self.language}')
        self.timelim = float(_first_set(timelim, exercise.time_limit, grading_config['time_limit']))
        self.memlim = int(_first_set(memlim, grading_config['memory_limit']))
        self.threads = int(_first_set(threads, grading_config['threads']))
        if self.timelim <= 0 or self.memlim <= 0 or self.threads <= 0:
            raise ValueError('time limit, memory limit and threads must be positive')
        self.max_additional_info = int(grading_config['max_additional_info'])
        self.scenario_filter = scenario_filter

    def _selected(self) -> list[int]:
        return [
            pos
            for pos in range(len(self.exercise.scenarios))
            if self.scenario_filter is None or self.scenario_filter.search(self.exercise.scenario_id(pos))
        ]

    def _run_scenario(self, submission: Submission, pos: int) -> Verdict:
        # This may be called off-main thread.
        verdict = ScenarioRun(self, pos).run(submission)
        log.info(f'{self.exercise.id}: {verdict}')
        return verdict

    def grade(self, submission: Submission) -> GradeReport:
        """Grade a submission against every (selected) scenario.

        Raises:
            SubmissionFormatError: if the submission does not fit the
                exercise template at all
        """
        check_submission_format(self.exercise, submission)
        positions = self._selected()
        if self.threads > 1 and len(positions) > 1:
            with ThreadPoolExecutor(self.threads) as executor:
                verdicts = list(executor.map(lambda pos: self._run_scenario(submission, pos), positions))
        else:
            verdicts = [self._run_scenario(submission, pos) for pos in positions]

        report = GradeReport(self.exercise.id, tuple(verdicts), self.max_additional_info)
        log.info(f'{self.exercise.id} graded: {report.passed}/{report.total} scenarios passed')
        return report


def grade_submission(exercise: ExerciseDefinition, submission: Submission, **kwargs) -> GradeReport:
    """Convenience wrapper: grade one submission in a fresh session."""
    return GradingSession(exercise, **kwargs).grade(submission)
