"""
Appointment-scoped exclusive acquisition.

Every mutating operation on an existing appointment runs inside
AppointmentGate.hold(): a per-appointment lock inside this process, plus a
transaction holding SELECT ... FOR UPDATE on the appointment row so separate
processes on a database with row locks are serialized as well. The
appointment is loaded only after both are held.
"""
import logging
import threading
from contextlib import contextmanager

from django.conf import settings
from django.db import transaction

from .exceptions import AppointmentBusyError, NotFoundError
from .models import Appointment

logger = logging.getLogger(__name__)


class KeyedLock:
    """Registry of one lock per key. Entries are dropped once nobody holds or waits on them."""

    def __init__(self):
        self._mutex = threading.Lock()
        self._locks = {}

    def acquire(self, key, timeout=None):
        with self._mutex:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1

        lock = entry[0]
        acquired = lock.acquire() if timeout is None else lock.acquire(timeout=timeout)
        if not acquired:
            self._release_ref(key, entry)
        return acquired

    def release(self, key):
        with self._mutex:
            entry = self._locks[key]
        entry[0].release()
        self._release_ref(key, entry)

    def _release_ref(self, key, entry):
        with self._mutex:
            entry[1] -= 1
            if entry[1] == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    def __len__(self):
        with self._mutex:
            return len(self._locks)


class AppointmentGate:
    """Serializes mutations of a single appointment."""

    def __init__(self, timeout=None):
        self.timeout = timeout
        self._locks = KeyedLock()

    def _timeout(self):
        if self.timeout is not None:
            return self.timeout
        return getattr(settings, "APPOINTMENT_LOCK_TIMEOUT", None)

    @contextmanager
    def hold(self, appointment_id):
        """
        Yield the locked Appointment for appointment_id.

        The transaction commits when the block exits normally and rolls back
        on any exception. The lock is released on every exit path.

        Raises:
            AppointmentBusyError: lock not acquired within the configured timeout
            NotFoundError: appointment does not exist
        """
        try:
            appointment_id = int(appointment_id)
        except (TypeError, ValueError):
            raise NotFoundError("Appointment not found.")
        if not self._locks.acquire(appointment_id, timeout=self._timeout()):
            logger.warning("Appointment lock timeout", extra={"appointment_id": appointment_id})
            raise AppointmentBusyError(appointment_id)
        try:
            with transaction.atomic():
                try:
                    appointment = (
                        Appointment.objects.select_for_update(of=("self",))
                        .select_related("owner", "pet")
                        .get(pk=appointment_id)
                    )
                except Appointment.DoesNotExist:
                    raise NotFoundError("Appointment not found.")
                yield appointment
        finally:
            self._locks.release(appointment_id)


appointment_gate = AppointmentGate()
