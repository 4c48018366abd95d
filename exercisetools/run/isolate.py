"""
Confinement of learner programs in Linux namespaces.

A confined program gets fresh user, mount, PID and network namespaces:

- every mount is read-only, except the one directory the program may
  write to,
- the program runs as the child of a small init, the first process of
  the new PID namespace.  Once that init exits or is killed, the kernel
  kills every process left in the namespace, including ones that
  called setsid() to leave the process group,
- the network namespace holds nothing but a loopback device that is
  down.

enter() is run in the child between fork and exec (see
limit.set_sandbox_limits), and init_command() wraps the run command so
that the init is what gets exec'd.
"""
import ctypes
import errno
import functools
import os
import re
import shutil
import subprocess
import sys
import tempfile

MS_NOSUID = 2
MS_NODEV = 4
MS_NOEXEC = 8
MS_RDONLY = 1
MS_REMOUNT = 32
MS_BIND = 4096
MS_REC = 16384
MS_PRIVATE = 1 << 18

# Uid/gid the program runs as inside the namespace when the grader runs
# as root.  Anything but 0, so the program has no capabilities there.
NOBODY = 65534

# Kernel file systems, which may refuse to be remounted.
PSEUDO_FS = ('/proc', '/sys')

_libc = ctypes.CDLL(None, use_errno=True)
_libc.mount.argtypes = [ctypes.c_char_p, ctypes.c_char_p, ctypes.c_char_p, ctypes.c_ulong, ctypes.c_void_p]

# Launcher, exec'd outside the PID namespace.  Its first child is the
# namespace's init, which runs the program, reaps whatever gets
# reparented to it and reports the program's wait status back.  The
# launcher then terminates the same way the program did.
INIT = '''\
import os, signal, sys
r, w = os.pipe()
init = os.fork()
if init == 0:
    os.close(r)
    program = os.fork()
    if program == 0:
        os.close(w)
        try:
            os.execvp(sys.argv[1], sys.argv[1:])
        except OSError as err:
            sys.stderr.write('cannot run %s: %s\\n' % (sys.argv[1], err))
            os._exit(127)
    while True:
        pid, status = os.wait()
        if pid == program:
            break
    os.write(w, b'%d' % status)
    os._exit(0)
os.close(w)
status = os.read(r, 64)
os.waitpid(init, 0)
code = os.waitstatus_to_exitcode(int(status)) if status else -signal.SIGKILL
if code < 0:
    if -code != signal.SIGKILL:
        signal.signal(-code, signal.SIG_DFL)
    os.kill(os.getpid(), -code)
    code = 128 - code
os._exit(code)
'''


def init_command(argv: list[str]) -> list[str]:
    return [sys.executable, '-I', '-S', '-c', INIT] + argv


def enter(writable_dir: str) -> None:
    """Move the calling process into new namespaces and make everything
    but writable_dir read-only.  Meant to run between fork and exec.
    """
    writable_dir = os.path.realpath(writable_dir)
    uid, gid = os.getuid(), os.getgid()
    os.unshare(os.CLONE_NEWUSER | os.CLONE_NEWNS | os.CLONE_NEWPID | os.CLONE_NEWNET)
    _write('/proc/self/uid_map', f'{uid or NOBODY} {uid} 1\n')
    _write('/proc/self/setgroups', 'deny')
    _write('/proc/self/gid_map', f'{gid or NOBODY} {gid} 1\n')

    _mount(None, '/', None, MS_REC | MS_PRIVATE)
    _mount(writable_dir, writable_dir, None, MS_BIND | MS_REC)
    for path in _mount_points():
        if path == writable_dir or path.startswith(writable_dir + '/'):
            continue
        try:
            _mount(None, path, None, MS_REMOUNT | MS_BIND | MS_RDONLY | _locked_flags(path))
        except OSError as err:
            # Mount points that no longer resolve cannot be reached either.
            if err.errno != errno.ENOENT and not path.startswith(PSEUDO_FS):
                raise
    # The working directory still points below the mounts as they were.
    os.chdir(os.getcwd())


@functools.cache
def available() -> bool:
    """Check (once) whether programs can be confined on this host.
    Unprivileged user namespaces are disabled on some hosts (and in
    most containers), and os.unshare needs Python 3.12."""
    if not hasattr(os, 'unshare') or not sys.platform.startswith('linux'):
        return False
    probe_dir = tempfile.mkdtemp(prefix='isolate-')
    try:
        subprocess.run(init_command([sys.executable, '-I', '-S', '-c', 'open("ok", "w").close()']),
                       cwd=probe_dir, preexec_fn=functools.partial(enter, probe_dir),
                       stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=True, timeout=30)
        return os.path.exists(os.path.join(probe_dir, 'ok'))
    except (subprocess.SubprocessError, OSError):
        return False
    finally:
        shutil.rmtree(probe_dir, ignore_errors=True)


def _write(path: str, data: str) -> None:
    with open(path, 'w') as f:
        f.write(data)


def _mount(source: str | None, target: str, fstype: str | None, flags: int) -> None:
    encode = lambda s: os.fsencode(s) if s is not None else None
    if _libc.mount(encode(source), encode(target), encode(fstype), flags, None) != 0:
        err = ctypes.get_errno()
        raise OSError(err, os.strerror(err), target)


def _mount_points() -> list[str]:
    with open('/proc/self/mountinfo') as f:
        return [re.sub(r'\\([0-7]{3})', lambda m: chr(int(m.group(1), 8)), line.split()[4]) for line in f]


def _locked_flags(path: str) -> int:
    """Flags a bind remount of path has to repeat.  Atime flags are
    kept by the kernel when none are given."""
    st_flags = os.statvfs(path).f_flag
    flags = 0
    for st_flag, ms_flag in [(os.ST_NOSUID, MS_NOSUID), (os.ST_NODEV, MS_NODEV), (os.ST_NOEXEC, MS_NOEXEC)]:
        if st_flags & st_flag:
            flags |= ms_flag
    return flags
