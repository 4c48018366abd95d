"""
Module for dealing with resource limits and isolation of sandboxed runs.
"""

import math
import resource
import signal

from . import isolate

MB = 1024**2


def check_limit_capabilities(logger, confine=True):
    """Check if the grader is run with appropriate capabilities to set
    rlimits and isolate learner programs, and if not, issue warnings.

    Params:
        logger: object to issue warnings to (by calling 'warning' method)
        confine (bool): whether learner programs are to be confined
            to namespaces
    """
    (_, cpu_hard) = resource.getrlimit(resource.RLIMIT_CPU)
    if cpu_hard != resource.RLIM_INFINITY:
        logger.warning("Hard CPU rlimit of %d, runs involving higher CPU limits than this may behave incorrectly."
                       % cpu_hard)

    (_, mem_hard) = resource.getrlimit(resource.RLIMIT_AS)
    if mem_hard != resource.RLIM_INFINITY:
        logger.warning("Hard memory rlimit of %.0f MB, runs involving a higher memory limit may crash unexpectedly."
                       % (mem_hard/1024.0/1024.0))

    if confine and not isolate.available():
        logger.warning("Cannot create user namespaces here, so learner programs cannot be confined and every run will be reported as a judge error.")


def try_limit(limit, soft, hard):
    """Attempt to set an rlimit, but caps it at the current hard limit for
    the resource (instead of failing like a call to resource.setrlimit
    would).

    Params:
        limit: resource to limit (e.g. resource.RLIMIT_CPU)
        soft: soft limit
        hard: hard limit
    """
    (_, cur_hard) = resource.getrlimit(limit)
    if not __limit_less(soft, cur_hard):
        soft = cur_hard
    if not __limit_less(hard, cur_hard):
        hard = cur_hard
    resource.setrlimit(limit, (soft, hard))


def set_sandbox_limits(timelim, memlim, output_limit, open_files, processes, confine_to=None):
    """Child-side setup of a sandboxed process, run between fork and exec.

    Params:
        timelim (float): wall-clock time limit in seconds, used to derive
            the CPU time limit (None for no limit)
        memlim (int): address space limit in MB (None for no limit)
        output_limit (int): largest file the program may write, in MB
        open_files (int): maximum number of open file descriptors
        processes (int): maximum number of processes
        confine_to (str): if not None, confine the process to new
            namespaces in which only this directory is writable
    """
    # Python sets some signal dispositions to SIG_IGN (notably SIGPIPE),
    # and these would otherwise leak through to the program we exec.
    for name in ('SIGPIPE', 'SIGXFSZ', 'SIGXCPU'):
        if hasattr(signal, name):
            signal.signal(getattr(signal, name), signal.SIG_DFL)

    # Namespaces first: the limits below may leave no room for setting
    # them up in what is still a copy of the grader.
    if confine_to is not None:
        isolate.enter(confine_to)

    if timelim is not None:
        cpu = math.ceil(timelim) + 1
        try_limit(resource.RLIMIT_CPU, cpu, cpu + 1)
    if memlim is not None:
        try_limit(resource.RLIMIT_AS, memlim * MB, memlim * MB)
    try_limit(resource.RLIMIT_FSIZE, output_limit * MB, output_limit * MB)
    try_limit(resource.RLIMIT_NOFILE, open_files, open_files)
    try_limit(resource.RLIMIT_NPROC, processes, processes)
    try_limit(resource.RLIMIT_CORE, 0, 0)


def __limit_less(lim1, lim2):
    """Helper function for comparing two rlimit values, handling "unlimited" correctly.

    Params:
        lim1 (integer): first rlimit
        lim2 (integer): second rlimit

    Returns:
        true if lim1 <= lim2
    """
    if lim2 == resource.RLIM_INFINITY:
        return True
    if lim1 == resource.RLIM_INFINITY:
        return False
    return lim1 <= lim2
