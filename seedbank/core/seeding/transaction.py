from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Protocol, runtime_checkable

from seedbank.core.errors import ErrorKind, ParsingError

log = logging.getLogger("seedbank.core")


@runtime_checkable
class Transactional(Protocol):
    def begin(self) -> None:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...


def _participants(resources: Iterable[Optional[object]]) -> List[Transactional]:
    out: List[Transactional] = []
    for r in resources:
        if r is not None and isinstance(r, Transactional) and not any(r is p for p in out):
            out.append(r)
    return out


def _rollback_all(started: List[Transactional]) -> List[BaseException]:
    failures: List[BaseException] = []
    for resource in reversed(started):
        try:
            resource.rollback()
        except Exception as e:  # keep reverting the remaining participants
            log.error("Rollback failed for %s: %s", type(resource).__name__, e)
            failures.append(e)
    return failures


@contextmanager
def rollback_scope(resources: Iterable[Optional[object]]) -> Iterator[None]:
    """
    Begin a transaction on every participant and revert all of them on exit,
    whether the body succeeded or raised.

    A failing body keeps its own exception; a rollback failure after a
    successful body surfaces as ``unexpected``.
    """
    started: List[Transactional] = []
    try:
        for resource in _participants(resources):
            resource.begin()
            started.append(resource)
    except Exception:
        _rollback_all(started)
        raise

    try:
        yield
    except BaseException:
        _rollback_all(started)
        raise

    failures = _rollback_all(started)
    if failures:
        raise ParsingError(
            f"Read-only changes could not be reverted: {failures[0]}",
            kind=ErrorKind.UNEXPECTED,
            suggestions=["Check the registry backend and object store for partial writes"],
        )
    log.debug("Read-only scope reverted %d participant(s)", len(started))


@contextmanager
def commit_scope(resources: Iterable[Optional[object]]) -> Iterator[None]:
    """Commit every participant when the body succeeds, revert them all when it raises."""
    started: List[Transactional] = []
    try:
        for resource in _participants(resources):
            resource.begin()
            started.append(resource)
    except Exception:
        _rollback_all(started)
        raise

    try:
        yield
    except BaseException:
        _rollback_all(started)
        raise

    for resource in started:
        resource.commit()
