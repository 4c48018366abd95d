"""
Isolated, single-use execution of learner programs.

Every call to Sandbox.execute gets a fresh work directory and a scrubbed
environment, and the program runs confined (see isolate.py): the work
directory is the only place it can write to, it has no network, and
every process it starts is killed before the call returns.  The work
directory is removed as well, so nothing one run does is visible to the
next.  If programs cannot be confined on this host, execute refuses to
run them unless the "isolate" setting is turned off.
"""
import functools
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass

from .. import config
from .. import languages
from ..errors import ExecutionCrash, ExecutionTimeout
from . import isolate
from . import limit
from .errors import ProgramError
from .program import is_RTE, is_TLE
from .source import SourceCode

log = logging.getLogger(__name__)

# Environment variables passed through to learner programs.
PASSTHROUGH_ENV = ['PATH', 'LANG', 'LC_ALL']


@dataclass(frozen=True)
class ExecutionResult:
    stdout: str
    stderr: str
    exit_code: int | None
    crashed: bool
    timed_out: bool
    runtime: float = 0.0

    def check(self, timelim: float) -> None:
        """Raise ExecutionTimeout or ExecutionCrash unless the program
        ran to completion."""
        if self.timed_out:
            raise ExecutionTimeout(timelim)
        if self.crashed:
            raise ExecutionCrash(self.exit_code, self.stderr)


class Sandbox:
    def __init__(self, language_config: languages.Languages | None = None, tmpdir: str | None = None,
                 limits: dict | None = None) -> None:
        """
        Args:
            language_config: languages programs may be written in
                (default: the configured language table)
            tmpdir: directory in which to create work directories
                (default: the system temp directory)
            limits: overrides for the sandbox settings in grading.yaml
        """
        self.language_config = language_config if language_config is not None else languages.load_language_config()
        self.tmpdir = tmpdir
        self.limits = config.load_grading_config() | (limits or {})
        self.confine = bool(self.limits['isolate'])
        _check_capabilities(self.confine)

    def resolve_language(self, language: str | languages.Language) -> languages.Language:
        if isinstance(language, languages.Language):
            return language
        lang = self.language_config.get(language)
        if lang is None:
            raise ProgramError(f'Unknown language {language}')
        return lang

    def environment(self, home: str) -> dict[str, str]:
        env = {key: os.environ[key] for key in PASSTHROUGH_ENV if key in os.environ}
        env['HOME'] = home
        env['TMPDIR'] = home
        return env

    def execute(self, lines: list[str], language: str | languages.Language,
                timelim: float | None = None, memlim: int | None = None) -> ExecutionResult:
        """Run a program and capture its output.

        Args:
            lines: complete source of the program
            language: language id or Language of the program
            timelim: wall-clock budget in seconds
            memlim: memory limit in MB

        Raises:
            ProgramError: if the program could not be started at all
                (unknown language, missing compiler, programs cannot
                be confined on this host, ...)
        """
        lang = self.resolve_language(language)
        if self.confine and not isolate.available():
            raise ProgramError('Cannot confine programs on this host (no user namespaces); '
                               'set "isolate: false" in grading.yaml to run them unconfined')
        if timelim is None:
            timelim = float(self.limits['time_limit'])
        if memlim is None:
            memlim = int(self.limits['memory_limit'])

        work_dir = tempfile.mkdtemp(prefix='sandbox-', dir=self.tmpdir)
        try:
            home = os.path.join(work_dir, 'program')
            os.mkdir(home)
            env = self.environment(home)
            program = SourceCode(lines, lang, home, env=env)
            (compiled, message) = program.compile()
            if not compiled:
                log.debug('compilation of %s failed', program)
                return ExecutionResult(stdout='', stderr=message or '', exit_code=None, crashed=True, timed_out=False)

            outfile = os.path.join(work_dir, 'stdout')
            errfile = os.path.join(work_dir, 'stderr')
            status, runtime, timed_out = program.run(
                outfile=outfile,
                errfile=errfile,
                timelim=timelim,
                memlim=memlim,
                work_dir=home,
                env=env,
                output_limit=self.limits['output_limit'],
                open_files=self.limits['open_files'],
                processes=self.limits['processes'],
                confine_to=home if self.confine else None,
            )
            stdout = self.__read_output(outfile)
            stderr = self.__read_output(errfile)
        finally:
            _remove_tree(work_dir)

        timed_out = timed_out or is_TLE(status)
        crashed = not timed_out and is_RTE(status)
        log.debug('%s finished: status %s, %.2fs%s', program, status, runtime, ' (timed out)' if timed_out else '')
        return ExecutionResult(stdout=stdout, stderr=stderr, exit_code=status,
                               crashed=crashed, timed_out=timed_out, runtime=runtime)

    def __read_output(self, path: str) -> str:
        # Note: learner output may not be valid utf-8, "replace" to be on the safe side
        with open(path, 'r', encoding='utf-8', errors='replace', newline='') as f:
            return f.read(self.limits['output_limit'] * limit.MB)


@functools.cache
def _check_capabilities(confine: bool) -> None:
    limit.check_limit_capabilities(log, confine)


def _remove_tree(path: str) -> None:
    """Remove a work directory, including anything the learner program
    made unwritable."""
    for root, dirs, _ in os.walk(path):
        for name in dirs:
            subdir = os.path.join(root, name)
            if not os.path.islink(subdir):
                os.chmod(subdir, 0o700)
    shutil.rmtree(path)
