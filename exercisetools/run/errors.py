"""Exceptions for the run package."""


class ProgramError(Exception):
    """The sandbox could not build or start a program."""
    pass
