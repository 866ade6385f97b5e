"""
Row locks for the bed registry, bounded by ``BED_LOCK_TIMEOUT_MS``.

All helpers must run inside ``transaction.atomic``; the locks are held
until the enclosing transaction ends. Lock order is fixed: the registry
sentinel first (registration/deletion only), then bed rows ascending.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterable, Optional

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, OperationalError, connections

from beds.exceptions import LockTimeout, UnknownBed
from beds.metrics import LOCK_TIMEOUTS
from beds.models import Bed, RegistryLock

logger = logging.getLogger(__name__)

REGISTRY_LOCK_NAME = 'beds'

# PostgreSQL SQLSTATE lock_not_available, MySQL ER_LOCK_WAIT_TIMEOUT
PG_LOCK_NOT_AVAILABLE = '55P03'
MYSQL_LOCK_WAIT_TIMEOUT = 1205


def _apply_timeout(connection) -> None:
    timeout_ms = settings.BED_LOCK_TIMEOUT_MS
    if connection.vendor == 'postgresql':
        with connection.cursor() as c:
            # Transaction-local, reset at commit/rollback
            c.execute("SELECT set_config('lock_timeout', %s, true)", [f'{timeout_ms}ms'])
    elif connection.vendor == 'mysql':
        with connection.cursor() as c:
            c.execute('SET SESSION innodb_lock_wait_timeout = %s', [max(1, timeout_ms // 1000)])
    # sqlite: the connection's busy timeout applies


def is_lock_timeout(connection, exc: OperationalError) -> bool:
    cause = exc.__cause__
    if connection.vendor == 'postgresql':
        code = getattr(cause, 'sqlstate', None) or getattr(cause, 'pgcode', None)
        return code == PG_LOCK_NOT_AVAILABLE
    if connection.vendor == 'mysql':
        args = getattr(cause, 'args', None) or exc.args
        return bool(args) and args[0] == MYSQL_LOCK_WAIT_TIMEOUT
    message = str(exc).lower()
    return 'database is locked' in message or 'database table is locked' in message


@contextmanager
def lock_timeout(scope: str, *, bed_number: Optional[int] = None, using: str = DEFAULT_DB_ALIAS):
    """Bound lock waits in the block and turn a timed-out wait into ``LockTimeout``."""
    connection = connections[using]
    try:
        _apply_timeout(connection)
        yield
    except OperationalError as exc:
        if not is_lock_timeout(connection, exc):
            raise
        LOCK_TIMEOUTS.labels(scope=scope).inc()
        logger.warning('lock wait on %s exceeded %sms', scope, settings.BED_LOCK_TIMEOUT_MS)
        raise LockTimeout(
            f'timed out waiting for the {scope} lock', bed_number=bed_number
        ) from exc


def lock_registry() -> None:
    """Take the registry-wide lock used for sequence checks."""
    with lock_timeout('registry'):
        # The migration creates the row; a flushed table gets it back here
        RegistryLock.objects.get_or_create(name=REGISTRY_LOCK_NAME)
        RegistryLock.objects.select_for_update().get(name=REGISTRY_LOCK_NAME)


def lock_beds(numbers: Iterable[Optional[int]]) -> dict[int, Bed]:
    """Lock the given bed rows in ascending order and return them by number.

    ``None`` entries are ignored. Raises ``UnknownBed`` for the lowest
    number that is not registered.
    """
    wanted = sorted({n for n in numbers if n is not None})
    if not wanted:
        return {}
    with lock_timeout('bed', bed_number=wanted[0]):
        rows = list(Bed.objects.select_for_update().filter(number__in=wanted).order_by('number'))
    beds = {b.number: b for b in rows}
    for number in wanted:
        if number not in beds:
            raise UnknownBed(number)
    return beds
