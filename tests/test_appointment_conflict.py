"""
Scheduling eligibility.

A pet cannot have two open appointments (SCHEDULED, IN_PROGRESS, WAITING_PAYMENT)
at the same instant. Canceled and completed appointments free the slot.
Schedules must be in the future, the pet must belong to the owner and
the owner must be active.
"""
from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone

from grooming.exceptions import AppointmentConflictError, DomainRuleError, InactiveOwnerError, NotFoundError
from grooming.services import AppointmentService, EligibilityChecker
from tests.factories import AppointmentFactory, CatalogEntryFactory, OwnerFactory, PetFactory


def _items():
    return [{"catalog_id": CatalogEntryFactory().id, "quantity": 1}]


@pytest.mark.django_db
class TestAppointmentConflict:
    def test_same_pet_same_time_is_rejected(self, tomorrow):
        pet = PetFactory()
        AppointmentService.create(pet.owner_id, pet.id, tomorrow, _items())

        with pytest.raises(AppointmentConflictError):
            AppointmentService.create(pet.owner_id, pet.id, tomorrow, _items())
        assert pet.appointments.count() == 1

    @pytest.mark.parametrize("status", ["SCHEDULED", "IN_PROGRESS", "WAITING_PAYMENT"])
    def test_open_statuses_hold_the_slot(self, tomorrow, status):
        existing = AppointmentFactory(scheduled_at=tomorrow, status=status)
        with pytest.raises(AppointmentConflictError):
            AppointmentService.create(existing.owner_id, existing.pet_id, tomorrow, _items())

    @pytest.mark.parametrize("status", ["CANCELED", "COMPLETED"])
    def test_closed_statuses_free_the_slot(self, tomorrow, status):
        existing = AppointmentFactory(scheduled_at=tomorrow, status=status)
        appointment, _ = AppointmentService.create(existing.owner_id, existing.pet_id, tomorrow, _items())
        assert appointment.id != existing.id

    def test_rebook_after_cancel(self, tomorrow):
        pet = PetFactory()
        first, _ = AppointmentService.create(pet.owner_id, pet.id, tomorrow, _items())
        AppointmentService.apply_action(first.id, "CANCEL")

        second, _ = AppointmentService.create(pet.owner_id, pet.id, tomorrow, _items())
        assert second.status == "SCHEDULED"

    def test_different_time_is_allowed(self, tomorrow):
        existing = AppointmentFactory(scheduled_at=tomorrow)
        appointment, _ = AppointmentService.create(
            existing.owner_id, existing.pet_id, tomorrow + timedelta(minutes=1), _items()
        )
        assert appointment.pk

    def test_other_pet_same_time_is_allowed(self, tomorrow):
        existing = AppointmentFactory(scheduled_at=tomorrow)
        other = PetFactory(owner=existing.owner)
        appointment, _ = AppointmentService.create(existing.owner_id, other.id, tomorrow, _items())
        assert appointment.pk

    def test_constraint_catches_race_past_the_check(self, tomorrow):
        existing = AppointmentFactory(scheduled_at=tomorrow)
        with patch.object(EligibilityChecker, "ensure_slot_free"):
            with pytest.raises(AppointmentConflictError):
                AppointmentService.create(existing.owner_id, existing.pet_id, tomorrow, _items())
        assert existing.pet.appointments.count() == 1

    def test_conflict_via_api_returns_409(self, api_client, tomorrow):
        existing = AppointmentFactory(scheduled_at=tomorrow)
        response = api_client.post(
            "/api/appointments/",
            {
                "owner_id": existing.owner_id,
                "pet_id": existing.pet_id,
                "scheduled_at": tomorrow.isoformat(),
                "items": _items(),
            },
            format="json",
        )
        assert response.status_code == 409
        assert response.data["error"]["code"] == "CONFLICT_SCHEDULE"


@pytest.mark.django_db
class TestSchedulingEligibility:
    def test_past_schedule_is_rejected(self):
        pet = PetFactory()
        with pytest.raises(DomainRuleError, match="past"):
            AppointmentService.create(pet.owner_id, pet.id, timezone.now() - timedelta(hours=1), _items())

    def test_pet_of_another_owner_is_rejected(self, tomorrow):
        pet = PetFactory()
        stranger = OwnerFactory()
        with pytest.raises(DomainRuleError, match="does not belong"):
            AppointmentService.create(stranger.id, pet.id, tomorrow, _items())

    def test_inactive_owner_is_rejected(self, tomorrow):
        pet = PetFactory(owner=OwnerFactory(status="INACTIVE"))
        with pytest.raises(InactiveOwnerError):
            AppointmentService.create(pet.owner_id, pet.id, tomorrow, _items())

    def test_unknown_owner(self, tomorrow):
        pet = PetFactory()
        with pytest.raises(NotFoundError, match="Owner not found"):
            AppointmentService.create(999999, pet.id, tomorrow, _items())

    def test_unknown_pet(self, tomorrow):
        owner = OwnerFactory()
        with pytest.raises(NotFoundError, match="Pet not found"):
            AppointmentService.create(owner.id, 999999, tomorrow, _items())

    def test_has_appointment_at_ignores_canceled(self, tomorrow):
        appointment = AppointmentFactory(scheduled_at=tomorrow, status="CANCELED")
        assert not EligibilityChecker.has_appointment_at(appointment.pet_id, tomorrow)
        assert EligibilityChecker.has_appointment_at(appointment.pet_id, tomorrow, statuses=("CANCELED",))
