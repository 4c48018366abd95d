"""Abstract base class for programs.
"""
import functools
import logging
import os
import shutil
import signal
import subprocess
import time

from . import isolate
from . import limit
from .errors import ProgramError

log = logging.getLogger(__name__)


def is_TLE(status: int) -> bool:
    """True if the process was killed for exceeding its CPU limit."""
    return status < 0 and -status == signal.SIGXCPU


def is_RTE(status: int) -> bool:
    return status != 0


class Program(object):
    """Abstract base class for programs.
    """

    def run(self, infile='/dev/null', outfile='/dev/null', errfile='/dev/null',
            args=None, timelim=5.0, memlim=1024, work_dir=None, env=None,
            output_limit=8, open_files=64, processes=64, confine_to=None):
        """Run the program.

        Args:
            infile (str): name of file to pass on stdin
            outfile (str): name of file to send stdout to
            errfile (str): name of file to send stderr to
            args (list of str): additional command-line arguments to
                pass to the program
            timelim (float): wall-clock time limit in seconds
            memlim (int): memory limit in MB
            work_dir (str): working directory of the program
            env (dict): complete environment of the program
            output_limit (int): largest file the program may write, in MB
            open_files (int): maximum number of open files
            processes (int): maximum number of processes
            confine_to (str): if not None, run the program confined to
                namespaces in which only this directory is writable
                (see isolate.py)

        Returns:
            triple (status, runtime, timed_out):
               status (int): exit status of the process, negative if
                   killed by a signal
               runtime (float): wall-clock runtime, in seconds
               timed_out (bool): whether we killed the process for
                   exceeding timelim
        """
        runcmd = self.get_runcmd(memlim=memlim)
        if runcmd == []:
            raise ProgramError('Could not figure out how to run %s' % self)
        if shutil.which(runcmd[0], path=(env if env is not None else os.environ).get('PATH')) is None:
            raise ProgramError('Could not find %s to run %s' % (runcmd[0], self))
        if args is None:
            args = []
        argv = runcmd + args
        if confine_to is not None:
            argv = isolate.init_command(argv)
        if self.should_skip_memory_rlimit():
            memlim = None

        setup = functools.partial(limit.set_sandbox_limits, timelim, memlim,
                                  output_limit, open_files, processes, confine_to)
        return self.__run_wait(argv, infile, outfile, errfile, timelim, setup, work_dir, env)

    def compile(self) -> tuple[bool, str|None]:
        """Compile the program, if needed. Subclasses should override this method."""
        return (True, None)

    def get_runcmd(self, memlim=1024) -> list[str]:
        raise NotImplementedError

    def should_skip_memory_rlimit(self) -> bool:
        """Runtimes that reserve large amounts of virtual memory up front
        (the JVM, V8) crash and burn under an address space rlimit.
        Subclasses running such programs override this and return True.
        """
        return False


    @staticmethod
    def __run_wait(argv, infile, outfile, errfile, timelim, setup, work_dir, env):
        log.debug('run "%s < %s > %s 2> %s" in %s',
                  ' '.join(argv), infile, outfile, errfile, work_dir)
        timed_out = False
        with open(infile, 'rb') as fin, open(outfile, 'wb') as fout, open(errfile, 'wb') as ferr:
            start = time.monotonic()
            # A new session makes the program the leader of its own process
            # group, so anything it forks is killed along with it.
            try:
                proc = subprocess.Popen(argv, stdin=fin, stdout=fout, stderr=ferr,
                                        cwd=work_dir, env=env, close_fds=True,
                                        start_new_session=True, preexec_fn=setup)
            except (OSError, subprocess.SubprocessError) as err:
                raise ProgramError('Could not start %s: %s' % (argv[0], err))
            try:
                proc.wait(timeout=timelim)
            except subprocess.TimeoutExpired:
                timed_out = True
                log.debug('%s exceeded time limit of %ss, killing it', argv[0], timelim)
            finally:
                Program.__kill_group(proc.pid)
                proc.wait()
            runtime = time.monotonic() - start
        return proc.returncode, runtime, timed_out


    @staticmethod
    def __kill_group(pgid):
        try:
            os.killpg(pgid, signal.SIGKILL)
        except ProcessLookupError:
            pass
