"""
Owner, pet and catalog registries.

CPF is validated with check digits and is unique. Pets belong to one owner,
have a name unique per owner and a size that never changes. Owners with open
appointments cannot be deactivated. Catalog writes are manager-only.
"""
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from grooming.exceptions import DomainRuleError, InvalidInputError, NotFoundError
from grooming.models import CatalogEntry, Owner, Pet
from grooming.services import CatalogService, OwnerService
from tests.factories import (
    AppointmentFactory,
    AppointmentItemFactory,
    CatalogEntryFactory,
    OwnerFactory,
    PetFactory,
)

VALID_CPF = "39053344705"


def _owner_payload(**overrides):
    payload = {"name": "Joao Silva", "cpf": VALID_CPF, "phone": "(11) 99999-9999", "email": "joao@example.com"}
    payload.update(overrides)
    return payload


@pytest.mark.django_db
class TestOwnerEndpoints:
    def test_valid_cpf_is_accepted_and_normalized(self, api_client):
        response = api_client.post("/api/owners/", _owner_payload(cpf="390.533.447-05"), format="json")
        assert response.status_code == 201
        assert response.data["cpf"] == VALID_CPF
        assert response.data["phone"] == "11999999999"
        assert response.data["status"] == "ACTIVE"

    def test_masked_phone_with_plain_cpf_is_normalized(self, api_client):
        response = api_client.post("/api/owners/", _owner_payload(phone="(11) 3333-4444"), format="json")
        assert response.status_code == 201
        assert response.data["phone"] == "1133334444"

    def test_phone_with_wrong_digit_count_is_rejected(self, api_client):
        response = api_client.post("/api/owners/", _owner_payload(phone="(11) 9999-999"), format="json")
        assert response.status_code == 400
        assert "10 or 11 digits" in response.data["error"]["message"]

    def test_find_by_masked_cpf(self, api_client):
        owner = OwnerFactory(cpf=VALID_CPF)
        response = api_client.get("/api/owners/by-cpf/390.533.447-05/")
        assert response.status_code == 200
        assert response.data["id"] == owner.id

    def test_find_by_unknown_cpf_returns_404(self, api_client):
        response = api_client.get(f"/api/owners/by-cpf/{VALID_CPF}/")
        assert response.status_code == 404
        assert response.data["error"]["message"] == "Owner not found."

    def test_find_by_short_cpf_returns_400(self, api_client):
        response = api_client.get("/api/owners/by-cpf/123/")
        assert response.status_code == 400
        assert response.data["error"]["code"] == "INVALID_INPUT"

    def test_invalid_cpf_is_rejected(self, api_client):
        response = api_client.post("/api/owners/", _owner_payload(cpf="12345678900"), format="json")
        assert response.status_code == 400
        assert response.data["error"]["code"] == "VALIDATION_ERROR"
        assert "Invalid CPF" in response.data["error"]["message"]

    def test_duplicate_cpf_is_domain_rule(self, api_client):
        OwnerFactory(cpf=VALID_CPF)
        response = api_client.post("/api/owners/", _owner_payload(), format="json")
        assert response.status_code == 409
        assert response.data["error"]["code"] == "DOMAIN_RULE"
        assert Owner.objects.filter(cpf=VALID_CPF).count() == 1

    def test_cpf_cannot_change(self, api_client):
        owner = OwnerFactory(cpf=VALID_CPF)
        response = api_client.patch(f"/api/owners/{owner.id}/", {"cpf": "52998224725"}, format="json")
        assert response.status_code == 400

    def test_inactive_owner_cannot_be_updated(self, api_client):
        owner = OwnerFactory(status="INACTIVE")
        response = api_client.patch(f"/api/owners/{owner.id}/", {"name": "New Name"}, format="json")
        assert response.status_code == 409
        assert response.data["error"]["code"] == "INACTIVE_OWNER"

    def test_list_defaults_to_active(self, api_client):
        active = OwnerFactory()
        OwnerFactory(status="INACTIVE")
        response = api_client.get("/api/owners/")
        assert response.status_code == 200
        assert [row["id"] for row in response.data["results"]] == [active.id]

    def test_unauthenticated_is_rejected(self):
        response = APIClient().get("/api/owners/")
        assert response.status_code == 401
        assert response.data["error"]["code"] == "NOT_AUTHENTICATED"


@pytest.mark.django_db
class TestOwnerActions:
    def test_deactivate_without_open_appointments(self):
        owner = OwnerFactory()
        AppointmentFactory(owner=owner, status="COMPLETED")
        AppointmentFactory(owner=owner, status="CANCELED")
        assert OwnerService.apply_action(owner.id, "DEACTIVATE").status == "INACTIVE"

    @pytest.mark.parametrize("status", ["SCHEDULED", "IN_PROGRESS", "WAITING_PAYMENT"])
    def test_open_appointment_blocks_deactivation(self, status):
        owner = OwnerFactory()
        AppointmentFactory(owner=owner, status=status)
        with pytest.raises(DomainRuleError, match="open appointments"):
            OwnerService.apply_action(owner.id, "DEACTIVATE")
        owner.refresh_from_db()
        assert owner.is_active

    def test_reactivate(self):
        owner = OwnerFactory(status="INACTIVE")
        assert OwnerService.apply_action(owner.id, "ACTIVATE").is_active

    def test_repeated_action_is_domain_rule(self):
        owner = OwnerFactory()
        with pytest.raises(DomainRuleError, match="already active"):
            OwnerService.apply_action(owner.id, "ACTIVATE")

    def test_unknown_action_and_owner(self):
        owner = OwnerFactory()
        with pytest.raises(InvalidInputError):
            OwnerService.apply_action(owner.id, "DELETE")
        with pytest.raises(NotFoundError):
            OwnerService.apply_action(999999, "DEACTIVATE")

    def test_deactivate_via_api_returns_409_when_blocked(self, api_client):
        appointment = AppointmentFactory()
        response = api_client.post(
            f"/api/owners/{appointment.owner_id}/actions/", {"action": "DEACTIVATE"}, format="json"
        )
        assert response.status_code == 409
        assert response.data["error"]["message"] == "Owner cannot be inactivated while there are open appointments."


@pytest.mark.django_db
class TestPetEndpoints:
    def test_create_pet(self, api_client):
        owner = OwnerFactory()
        response = api_client.post(
            "/api/pets/",
            {"owner": owner.id, "name": "Rex", "species": "DOG", "breed": "Poodle", "size": "SMALL"},
            format="json",
        )
        assert response.status_code == 201
        assert response.data["size"] == "SMALL"

    def test_duplicate_name_for_same_owner_is_domain_rule(self, api_client):
        pet = PetFactory(name="Rex")
        response = api_client.post(
            "/api/pets/",
            {"owner": pet.owner_id, "name": "rex", "species": "DOG", "breed": "Poodle", "size": "SMALL"},
            format="json",
        )
        assert response.status_code == 409

    def test_same_name_for_other_owner_is_allowed(self, api_client):
        PetFactory(name="Rex")
        other = OwnerFactory()
        response = api_client.post(
            "/api/pets/",
            {"owner": other.id, "name": "Rex", "species": "CAT", "breed": "Siamese", "size": "SMALL"},
            format="json",
        )
        assert response.status_code == 201

    def test_size_cannot_change(self, api_client):
        pet = PetFactory(size="SMALL")
        response = api_client.patch(f"/api/pets/{pet.id}/", {"size": "LARGE"}, format="json")
        assert response.status_code == 400
        pet.refresh_from_db()
        assert pet.size == "SMALL"

    def test_inactive_owner_cannot_get_pets(self, api_client):
        owner = OwnerFactory(status="INACTIVE")
        response = api_client.post(
            "/api/pets/",
            {"owner": owner.id, "name": "Rex", "species": "DOG", "breed": "Poodle", "size": "SMALL"},
            format="json",
        )
        assert response.status_code == 409
        assert response.data["error"]["code"] == "INACTIVE_OWNER"

    def test_delete_pet_without_history(self, api_client):
        pet = PetFactory()
        response = api_client.delete(f"/api/pets/{pet.id}/")
        assert response.status_code == 204
        assert not Pet.objects.filter(pk=pet.id).exists()

    def test_delete_pet_of_inactive_owner_is_blocked(self, api_client):
        pet = PetFactory(owner=OwnerFactory(status="INACTIVE"))
        response = api_client.delete(f"/api/pets/{pet.id}/")
        assert response.status_code == 409
        assert response.data["error"]["code"] == "INACTIVE_OWNER"
        assert Pet.objects.filter(pk=pet.id).exists()

    def test_delete_pet_with_appointments_is_domain_rule(self, api_client):
        appointment = AppointmentFactory(status="COMPLETED")
        response = api_client.delete(f"/api/pets/{appointment.pet_id}/")
        assert response.status_code == 409
        assert response.data["error"]["code"] == "DOMAIN_RULE"
        assert response.data["error"]["message"] == "Pets with appointments cannot be deleted."

    def test_filter_by_owner(self, api_client):
        pet = PetFactory()
        PetFactory()
        response = api_client.get(f"/api/pets/?owner={pet.owner_id}")
        assert [row["id"] for row in response.data["results"]] == [pet.id]


@pytest.mark.django_db
class TestCatalog:
    def _payload(self, **overrides):
        payload = {
            "name": "Hydration",
            "duration_minutes": 30,
            "price_small": "20.00",
            "price_medium": "30.00",
            "price_large": "40.00",
        }
        payload.update(overrides)
        return payload

    def test_manager_creates_entry(self, manager_client):
        response = manager_client.post("/api/catalog/", self._payload(), format="json")
        assert response.status_code == 201
        assert response.data["status"] == "ACTIVE"

    def test_attendant_cannot_write(self, api_client):
        response = api_client.post("/api/catalog/", self._payload(), format="json")
        assert response.status_code == 403
        assert response.data["error"]["code"] == "PERMISSION_DENIED"

    def test_attendant_can_read(self, api_client):
        CatalogEntryFactory()
        response = api_client.get("/api/catalog/")
        assert response.status_code == 200
        assert response.data["count"] == 1

    def test_non_positive_price_is_rejected(self, manager_client):
        response = manager_client.post("/api/catalog/", self._payload(price_large="0.00"), format="json")
        assert response.status_code == 400

    def test_duplicate_name_is_domain_rule(self, manager_client):
        CatalogEntryFactory(name="Hydration")
        response = manager_client.post("/api/catalog/", self._payload(name="hydration"), format="json")
        assert response.status_code == 409

    def test_deactivate_and_reactivate(self):
        entry = CatalogEntryFactory(price_small=Decimal("10.00"))
        assert CatalogService.apply_action(entry.id, "DEACTIVATE").status == "INACTIVE"
        with pytest.raises(DomainRuleError):
            CatalogService.apply_action(entry.id, "DEACTIVATE")
        assert CatalogService.apply_action(entry.id, "ACTIVATE").status == "ACTIVE"

    def test_manager_deletes_unused_entry(self, manager_client):
        entry = CatalogEntryFactory()
        response = manager_client.delete(f"/api/catalog/{entry.id}/")
        assert response.status_code == 204
        assert not CatalogEntry.objects.filter(pk=entry.id).exists()

    def test_attendant_cannot_delete(self, api_client):
        entry = CatalogEntryFactory()
        response = api_client.delete(f"/api/catalog/{entry.id}/")
        assert response.status_code == 403
        assert CatalogEntry.objects.filter(pk=entry.id).exists()

    def test_entry_used_by_appointments_cannot_be_deleted(self, manager_client):
        item = AppointmentItemFactory()
        response = manager_client.delete(f"/api/catalog/{item.catalog_entry_id}/")
        assert response.status_code == 409
        assert response.data["error"]["code"] == "DOMAIN_RULE"
        assert CatalogEntry.objects.filter(pk=item.catalog_entry_id).exists()

    def test_missing_entry(self):
        with pytest.raises(NotFoundError):
            CatalogService.apply_action(999999, "ACTIVATE")
