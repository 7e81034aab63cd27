# File: backend/commands.py
#
# Mutations with simulated network latency. The operation validates and
# stages its changes, the coroutine suspends once, and only then commits.
# Abandoning the command during the suspension leaves no trace.
#
# Commands run one at a time: every session shares the in-memory database's
# single connection, so a rollback in one command would also discard work
# another command has staged. The endpoints that call run_command are async
# so the suspension happens on the event loop; the session work around it
# runs on the loop thread.

import asyncio
import logging
import weakref
from typing import Callable, TypeVar

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")

# One lock per event loop; asyncio.Lock must not be shared between loops
_locks = weakref.WeakKeyDictionary()


def _command_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = _locks.get(loop)
    if lock is None:
        lock = _locks[loop] = asyncio.Lock()
    return lock


async def run_command(db: Session, operation: Callable[..., T], *args, delay: float = 0.0, **kwargs) -> T:
    """
    Run `operation(db, *args, commit=False, **kwargs)`, wait `delay` seconds,
    then commit. Errors and cancellation roll the session back.
    """
    async with _command_lock():
        try:
            result = operation(db, *args, commit=False, **kwargs)
            await asyncio.sleep(delay)
            db.commit()
        except asyncio.CancelledError:
            logger.info("%s cancelled before commit; rolling back", operation.__name__)
            db.rollback()
            raise
        except Exception:
            db.rollback()
            raise
    return result
