"""
Implementation of programs provided as source lines.
"""
import logging
import os
import shlex
import shutil
import subprocess

from .errors import ProgramError
from .program import Program

log = logging.getLogger(__name__)


class SourceCode(Program):
    """Class representing a program provided by source code.
    """
    def __init__(self, lines, language, work_dir, env=None, compile_timelim=30):
        """Instantiate SourceCode object

        Args:
            lines (list of str): source lines of the program; written,
                newline-terminated, to the main file of the language.

            language (exercisetools.languages.Language): language
                definition for the programming language of the code.

            work_dir (str): existing, empty directory in which to place
                (and compile) the program

            env (dict): environment for the compiler

            compile_timelim (float): wall-clock limit for compilation
        """
        self.language = language
        self.path = work_dir
        self.name = language.main_filename()
        self.mainfile = os.path.join(self.path, self.name)
        self.binary = os.path.join(self.path, 'run')
        self.src = [self.mainfile]
        self._env = env
        self._compile_timelim = compile_timelim

        if not os.path.isdir(self.path):
            raise ProgramError('%s is not a directory' % self.path)
        with open(self.mainfile, 'w', encoding='utf-8') as f:
            f.write(''.join('%s\n' % line for line in lines))


    def compile(self):
        """Compile the source code.

        Returns tuple:
            (True, None) if compilation succeeded
            (False, errmsg) otherwise
        """
        if self.language.compile is None:
            return (True, None)

        command = self.get_compilecmd()
        compiler = shutil.which(command[0])
        if compiler is None:
            raise ProgramError('%s does not seem to be installed, could not find compiler %s'
                               % (self.language.name, command[0]))

        log.debug('compile command: %s', command)

        try:
            subprocess.run(command, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                           cwd=self.path, env=self._env, timeout=self._compile_timelim, check=True)
        except subprocess.CalledProcessError as err:
            return (False, err.output.decode('utf8', 'replace'))
        except subprocess.TimeoutExpired:
            return (False, 'compilation did not finish within %ss' % self._compile_timelim)
        return (True, None)


    def get_compilecmd(self):
        return shlex.split(self.language.compile.format(**self.__get_substitution()))


    def get_runcmd(self, memlim=1024):
        """Run command for the program.

        Args:
            memlim (int): if not None, memory limit in MB (only
                relevant for languages where memory limit is passed on
                command line)
        """
        subs = self.__get_substitution(memlim)
        return shlex.split(self.language.run.format(**subs))


    def should_skip_memory_rlimit(self):
        return self.language.id in ['javascript']


    def __str__(self):
        """String representation"""
        return '%s (%s)' % (self.name, self.language.name)


    def __get_substitution(self, memlim=1024):
        return {
            'path': self.path,
            'files': ' '.join(self.src),
            'memlim': memlim,
            'mainfile': self.mainfile,
            'binary': self.binary
        }
