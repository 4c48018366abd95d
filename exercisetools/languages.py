"""
The programming languages learner submissions may be written in.

The table itself is configuration (languages.yaml, layered like every
other config file).  Grading only ever asks three things of it: the
language with a given id, the language of a single submission file, and
the name of the file the sandbox writes a program to.
"""
import fnmatch
import os
import string
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from . import config

# Variables the compile and run commands may use.
VARIABLES = frozenset(['path', 'files', 'binary', 'mainfile', 'memlim'])
ENTRY_POINTS = frozenset(['binary', 'mainfile'])


class LanguageConfigError(Exception):
    """Exception class for errors in language configuration."""


def _variables_in_command(cmd: str) -> set[str]:
    return {name for (_, name, _, _) in string.Formatter().parse(cmd) if name is not None}


class Language(BaseModel):
    id: str = Field(pattern=r'^[a-z][a-z0-9]*$')
    name: str
    priority: int = Field(strict=True)
    files: tuple[str, ...] = Field(min_length=1)
    compile: str | None = None
    run: str

    model_config = ConfigDict(extra='forbid', frozen=True)

    @field_validator('files', mode='before')
    @classmethod
    def _split_globs(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.split()
        return value

    @model_validator(mode='after')
    def _check_commands(self) -> 'Language':
        variables = _variables_in_command(self.run)
        if self.compile is not None:
            variables |= _variables_in_command(self.compile)
        unknown = variables - VARIABLES
        if unknown:
            raise ValueError(f'unknown variable(s) {", ".join(sorted(unknown))} in commands')
        entry = variables & ENTRY_POINTS
        if len(entry) != 1:
            raise ValueError('commands must use exactly one of {binary} and {mainfile} as entry point')
        return self

    def matches(self, filename: str) -> bool:
        basename = os.path.basename(filename)
        return any(fnmatch.fnmatch(basename, glob) for glob in self.files)

    def main_filename(self) -> str:
        """Name of the file the sandbox writes a program to, derived
        from the first files glob ("*.rb" gives "main.rb")."""
        return 'main' + os.path.splitext(self.files[0])[1]


class Languages:
    """The language table, keyed by language id."""

    def __init__(self, data: dict | None = None) -> None:
        self.languages: dict[str, Language] = {}
        if data is not None:
            self.update(data)

    def get(self, lang_id: str) -> Language | None:
        return self.languages.get(lang_id)

    def detect(self, filename: str) -> Language | None:
        """Language of a single submission file: among the languages whose
        file globs match its name, the one with the highest priority."""
        candidates = [lang for lang in self.languages.values() if lang.matches(filename)]
        return max(candidates, key=lambda lang: lang.priority, default=None)

    def update(self, data: dict) -> None:
        """Add languages from configuration data.  A (possibly partial)
        specification for a language already in the table overrides
        just the keys it gives.  Nothing changes if any entry is invalid.
        """
        if not isinstance(data, dict):
            raise LanguageConfigError(f'Language configuration must be a mapping, but is {type(data).__name__}')

        languages = dict(self.languages)
        for lang_id, spec in data.items():
            if not isinstance(spec, dict):
                raise LanguageConfigError(f'Specification of language {lang_id} must be a mapping, but is {type(spec).__name__}')
            base = languages[lang_id].model_dump(exclude={'id'}) if lang_id in languages else {}
            try:
                languages[lang_id] = Language.model_validate(base | spec | {'id': lang_id})
            except ValidationError as e:
                error_str = '\n'.join(f'    {"->".join(str(loc) for loc in err["loc"]) or "language"}: {err["msg"]}' for err in e.errors())
                raise LanguageConfigError(f'Invalid specification of language {lang_id}:\n{error_str}')

        priorities: dict[int, str] = {}
        for lang in languages.values():
            if lang.priority in priorities:
                raise LanguageConfigError(f'Languages {priorities[lang.priority]} and {lang.id} both have priority {lang.priority}')
            priorities[lang.priority] = lang.id
        self.languages = languages


def load_language_config() -> Languages:
    return Languages(config.load_config('languages.yaml'))
