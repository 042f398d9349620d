import logging
from contextlib import contextmanager

from django.db import transaction

logger = logging.getLogger(__name__)


class UnitOfWork:
    """
    One state transition == one atomic unit.

    Wraps ``transaction.atomic`` so the boundary is an object that can be
    handed to the stock ledger and the history log instead of being implied
    by decorators. Everything written while the unit is open commits or
    rolls back together.

    Events registered with :meth:`emit` are dispatched only after the
    outermost transaction commits; receiver failures are logged and never
    reach the caller.
    """

    def __init__(self, using=None):
        self.using = using
        self.active = False
        self._atomic = None

    def __enter__(self):
        self._atomic = transaction.atomic(using=self.using)
        self._atomic.__enter__()
        self.active = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.active = False
        return self._atomic.__exit__(exc_type, exc, tb)

    def emit(self, signal, sender, **kwargs):
        if not self.active:
            raise RuntimeError("Cannot emit events outside an open unit of work.")
        transaction.on_commit(
            lambda: dispatch_robust(signal, sender, **kwargs),
            using=self.using,
        )

    @classmethod
    @contextmanager
    def ensure(cls, uow=None):
        """
        Join ``uow`` when it is open, otherwise run inside a fresh unit.
        """
        if uow is not None and uow.active:
            yield uow
        else:
            with cls() as own:
                yield own


def dispatch_robust(signal, sender, **kwargs):
    """
    Best-effort fan-out: every receiver runs, failures are logged only.
    """
    results = signal.send_robust(sender=sender, **kwargs)
    for receiver, response in results:
        if isinstance(response, Exception):
            logger.error(
                "Event receiver %s failed: %s",
                getattr(receiver, "__qualname__", receiver),
                response,
                exc_info=response,
            )
    return results
