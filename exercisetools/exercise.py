"""Exercise definitions and learner submissions.

An exercise is handed to us as already-parsed data by the content
system (or read from an exercise YAML file, see load_exercise).
"""
import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Self, Type

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import MalformedExercise


def split_lines(text: str) -> list[str]:
    """Split source text into lines.  A trailing newline does not start
    a new (empty) line, and Windows line breaks are normalised."""
    lines = text.replace('\r\n', '\n').split('\n')
    if lines and lines[-1] == '':
        lines.pop()
    return lines


class Scenario(BaseModel):
    """One concrete set of substitution values and the output correct
    learner code produces under them."""

    id: str | None = None
    replacement_by_line: dict[int, str] = Field(
        default_factory=dict, validation_alias=AliasChoices('replacement_by_line', 'replacements')
    )
    expected_output: str

    model_config = ConfigDict(extra='forbid', frozen=True)


class ExerciseDefinition(BaseModel):
    id: str = Field(min_length=1)
    language: str | None = None
    time_limit: float | None = Field(default=None, gt=0)
    template_lines: tuple[str, ...] = Field(validation_alias=AliasChoices('template_lines', 'template'))
    fixed_line_indices: frozenset[int] = Field(validation_alias=AliasChoices('fixed_line_indices', 'fixed_lines'))
    scenarios: tuple[Scenario, ...]

    model_config = ConfigDict(extra='forbid', frozen=True)

    @field_validator('template_lines', mode='before')
    @classmethod
    def _split_template(cls, value: Any) -> Any:
        if isinstance(value, str):
            return split_lines(value)
        return value

    @model_validator(mode='after')
    def _check_consistency(self) -> Self:
        # MalformedExercise is not a ValueError, so pydantic lets it through as is.
        if not self.scenarios:
            raise MalformedExercise(f'exercise {self.id} has no scenarios')
        for index in sorted(self.fixed_line_indices):
            if not 0 <= index < len(self.template_lines):
                raise MalformedExercise(
                    f'exercise {self.id}: fixed line index {index} is outside the template '
                    f'({len(self.template_lines)} lines)'
                )
        seen: set[str] = set()
        for pos, scenario in enumerate(self.scenarios):
            scenario_id = self.scenario_id(pos)
            if scenario_id in seen:
                raise MalformedExercise(f'exercise {self.id}: duplicate scenario id {scenario_id}')
            seen.add(scenario_id)
            for index in sorted(scenario.replacement_by_line):
                if index not in self.fixed_line_indices:
                    raise MalformedExercise(
                        f'exercise {self.id}: scenario {scenario_id} replaces line {index}, which is not a fixed line'
                    )
        return self

    def scenario_id(self, pos: int) -> str:
        scenario = self.scenarios[pos]
        return scenario.id if scenario.id is not None else f'scenario-{pos + 1}'

    def template_line(self, index: int) -> str:
        return self.template_lines[index]

    def template_text(self) -> str:
        """The source as presented to the learner before they edit it."""
        return ''.join(f'{line}\n' for line in self.template_lines)


@dataclass(frozen=True)
class Submission:
    """The lines currently held by the learner: the template plus their
    own code, in original relative order."""

    source_lines: tuple[str, ...]

    @classmethod
    def from_text(cls: Type[Self], text: str) -> Self:
        return cls(tuple(split_lines(text)))

    @classmethod
    def from_file(cls: Type[Self], path: str | Path) -> Self:
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            return cls.from_text(f.read())


def parse_exercise(data: dict[str, Any]) -> ExerciseDefinition:
    """
    Parses a data structure (e.g. from an exercise YAML file) into an ExerciseDefinition.
    :raises MalformedExercise: if the data does not describe a consistent exercise
    """
    if not isinstance(data, dict):
        raise MalformedExercise(f'exercise definition must be a mapping, got {type(data).__name__}')
    data = copy.deepcopy(data)
    try:
        return ExerciseDefinition.model_validate(data)
    except ValidationError as e:
        error_str = '\n'.join([f'    {"->".join((str(loc) for loc in err["loc"]))}: {err["msg"]}' for err in e.errors()])
        raise MalformedExercise(f'Failed parsing exercise {data.get("id", "<unnamed>")}. Found {len(e.errors())} errors:\n{error_str}')


def load_exercise(path: str | Path) -> ExerciseDefinition:
    path = Path(path)
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as err:
        raise MalformedExercise(f'Exercise file {path}: failed to load: {err}')
    return parse_exercise(data)
