"""
Logging setup for swimsim runs.

Protocol modules log every state transition at DEBUG. A full DEBUG run is
noisy, so the CLI can instead open DEBUG for selected modules only, e.g.
``--debug-scope core.protocol`` to follow probes and refutations while the
driver stays at INFO.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable
from typing import Any

from loguru import logger

PACKAGE_PREFIX = "swimsim."

LOG_FORMAT = (
    "{time:HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"
)

type RecordFilter = Callable[[dict[str, Any]], bool]


def qualify_scope(scope: str) -> str:
    """Turn a short scope like ``core.merge`` into a full module prefix."""
    scope = scope.strip()
    if scope and not scope.startswith(PACKAGE_PREFIX) and scope != "swimsim":
        return PACKAGE_PREFIX + scope
    return scope


def scope_filter(scopes: Iterable[str]) -> RecordFilter:
    """Accept DEBUG records emitted by modules under one of `scopes`."""
    prefixes = tuple(sorted({qualify_scope(s) for s in scopes if s.strip()}))

    def _accept(record: dict[str, Any]) -> bool:
        if record["level"].name != "DEBUG":
            return False
        return (record["name"] or "").startswith(prefixes)

    return _accept


def configure_logging(
    level: str,
    *,
    debug_scopes: Iterable[str] = (),
    colorize: bool = False,
) -> list[int]:
    """
    Replace all loguru sinks with one stderr sink at `level`.

    With `debug_scopes`, a second stderr sink passes DEBUG records from the
    named modules only. Returns the handler ids.
    """
    logger.remove()
    handler_ids = [
        logger.add(sys.stderr, level=level, format=LOG_FORMAT, colorize=colorize)
    ]

    scopes = [scope for scope in debug_scopes if scope.strip()]
    if scopes and level.upper() != "DEBUG":
        handler_ids.append(
            logger.add(
                sys.stderr,
                level="DEBUG",
                format=LOG_FORMAT,
                colorize=colorize,
                filter=scope_filter(scopes),
            )
        )
    return handler_ids
