"""Error taxonomy surfaced by the srdir output module."""

from __future__ import annotations

from enum import IntEnum


class ResultCode(IntEnum):
    """Result codes reported to callers (and used as CLI exit status)."""

    OK = 0
    ERR_IO = 1
    ERR_ARG = 2
    ERR_MALLOC = 3
    ERR_NA = 4


class SrdirError(Exception):
    """Base class for every error raised while writing an archive."""

    code: ResultCode = ResultCode.ERR_IO


class ArgumentError(SrdirError, ValueError):
    """Invalid input: missing filename, unit size mismatch, unknown channel."""

    code = ResultCode.ERR_ARG


class ArchiveIOError(SrdirError, OSError):
    """Directory or file creation/write failure."""

    code = ResultCode.ERR_IO


class AllocationError(SrdirError, MemoryError):
    """A sample buffer could not be allocated."""

    code = ResultCode.ERR_MALLOC


class UnsupportedError(SrdirError):
    """Input the writer knowingly does not handle (multi-channel analog packets)."""

    code = ResultCode.ERR_NA


def result_code(exc: BaseException) -> ResultCode:
    if isinstance(exc, SrdirError):
        return exc.code
    return ResultCode.ERR_IO
