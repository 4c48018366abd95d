"""Package for managing execution of learner programs in exercisetools.
"""
from .errors import ProgramError
from .program import Program, is_RTE, is_TLE
from .sandbox import ExecutionResult, Sandbox
from .source import SourceCode
from . import isolate
from . import limit

__all__ = ['ExecutionResult', 'Program', 'ProgramError', 'Sandbox', 'SourceCode', 'is_RTE', 'is_TLE', 'isolate', 'limit']
