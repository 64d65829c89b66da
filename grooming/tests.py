from datetime import timedelta
from decimal import Decimal

import jwt
from django.conf import settings
from django.test import Client, TestCase
from django.utils import timezone
from rest_framework.test import APIClient, APIRequestFactory

from .models import Appointment, AppointmentItem, CatalogEntry, Owner, Pet, User
from .permissions import IsManager, IsManagerOrReadOnly, IsStaffMember
from .services import AppointmentService


class HealthCheckTests(TestCase):
    def test_health_is_public(self):
        response = Client().get("/api/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})


class JWTAuthenticationTests(TestCase):
    """Login returns tokens carrying the staff role."""

    def setUp(self):
        self.client = Client()
        self.user = User.objects.create_user(
            email="manager@groom.test",
            password="testpass123",
            role="MANAGER",
        )

    def _login(self, password="testpass123"):
        return self.client.post(
            "/api/auth/login/",
            {"email": "manager@groom.test", "password": password},
            content_type="application/json",
        )

    def test_login_returns_access_and_refresh_tokens(self):
        response = self._login()
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertIn("access", data)
        self.assertIn("refresh", data)

    def test_login_with_invalid_credentials_returns_401(self):
        response = self._login(password="wrongpass")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "NOT_AUTHENTICATED")

    def test_access_token_contains_role_and_email(self):
        access_token = self._login().json()["access"]
        payload = jwt.decode(
            access_token,
            settings.SIMPLE_JWT["SIGNING_KEY"],
            algorithms=[settings.SIMPLE_JWT["ALGORITHM"]],
        )
        self.assertEqual(payload["role"], "MANAGER")
        self.assertEqual(payload["email"], "manager@groom.test")

    def test_refresh_token_returns_new_access_token(self):
        refresh_token = self._login().json()["refresh"]
        response = self.client.post(
            "/api/auth/refresh/",
            {"refresh": refresh_token},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("access", response.json())

    def test_bearer_token_grants_access(self):
        access_token = self._login().json()["access"]
        response = self.client.get("/api/appointments/", HTTP_AUTHORIZATION=f"Bearer {access_token}")
        self.assertEqual(response.status_code, 200)


class PermissionClassesTests(TestCase):
    """Unit tests for IsManager, IsStaffMember and IsManagerOrReadOnly."""

    def setUp(self):
        self.factory = APIRequestFactory()
        self.manager = User.objects.create_user(email="manager@test.com", password="pass123", role="MANAGER")
        self.attendant = User.objects.create_user(email="att@test.com", password="pass123", role="ATTENDANT")
        self.superuser = User.objects.create_superuser(email="super@test.com", password="pass123")

    def test_is_manager_allows_manager_and_superuser(self):
        request = self.factory.get("/dummy")
        request.user = self.manager
        self.assertTrue(IsManager().has_permission(request, None))

        request.user = self.superuser
        self.assertTrue(IsManager().has_permission(request, None))

        request.user = self.attendant
        self.assertFalse(IsManager().has_permission(request, None))

    def test_is_staff_member_allows_roles(self):
        request = self.factory.get("/dummy")
        for user in (self.manager, self.attendant, self.superuser):
            with self.subTest(user=user.email):
                request.user = user
                self.assertTrue(IsStaffMember().has_permission(request, None))

        request.user = None
        self.assertFalse(IsStaffMember().has_permission(request, None))

    def test_manager_or_read_only(self):
        read = self.factory.get("/dummy")
        write = self.factory.post("/dummy")
        read.user = write.user = self.attendant
        self.assertTrue(IsManagerOrReadOnly().has_permission(read, None))
        self.assertFalse(IsManagerOrReadOnly().has_permission(write, None))

        write.user = self.manager
        self.assertTrue(IsManagerOrReadOnly().has_permission(write, None))


class AppointmentListingTests(TestCase):
    """Future and history listings."""

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(
            User.objects.create_user(email="att@groom.test", password="pass123", role="ATTENDANT")
        )
        self.owner = Owner.objects.create(name="Ana Souza", cpf="39053344705", phone="11999999999")
        self.pet = Pet.objects.create(owner=self.owner, name="Luna", species="DOG", breed="Poodle", size="SMALL")
        now = timezone.now().replace(microsecond=0)
        self.past = self._appointment(now - timedelta(days=2), "COMPLETED")
        self.older = self._appointment(now - timedelta(days=5), "CANCELED")
        self.soon = self._appointment(now + timedelta(days=1), "SCHEDULED")
        self.later = self._appointment(now + timedelta(days=3), "IN_PROGRESS")
        self.canceled_future = self._appointment(now + timedelta(days=2), "CANCELED")

    def _appointment(self, scheduled_at, status):
        return Appointment.objects.create(owner=self.owner, pet=self.pet, scheduled_at=scheduled_at, status=status)

    def _ids(self, response):
        return [row["id"] for row in response.json()["results"]]

    def test_future_lists_open_appointments_soonest_first(self):
        response = self.client.get("/api/appointments/future/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self._ids(response), [self.soon.id, self.later.id])

    def test_future_filters_by_open_status(self):
        response = self.client.get("/api/appointments/future/?status=in_progress")
        self.assertEqual(self._ids(response), [self.later.id])

    def test_future_rejects_terminal_status_filter(self):
        response = self.client.get("/api/appointments/future/?status=CANCELED")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "INVALID_INPUT")

    def test_history_lists_latest_first(self):
        response = self.client.get("/api/appointments/history/")
        self.assertEqual(self._ids(response), [self.past.id, self.older.id])

    def test_history_filters_by_status(self):
        response = self.client.get("/api/appointments/history/?status=CANCELED")
        self.assertEqual(self._ids(response), [self.older.id])

    def test_unknown_status_filter(self):
        response = self.client.get("/api/appointments/history/?status=LOST")
        self.assertEqual(response.status_code, 400)

    def test_list_future_service_accepts_reference_time(self):
        reference = timezone.now() + timedelta(days=2, hours=12)
        self.assertEqual(list(AppointmentService.list_future(now=reference)), [self.later])


class AppointmentSnapshotTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(
            User.objects.create_user(email="att@groom.test", password="pass123", role="ATTENDANT")
        )
        owner = Owner.objects.create(name="Ana Souza", cpf="39053344705", phone="11999999999")
        pet = Pet.objects.create(owner=owner, name="Luna", species="CAT", breed="Siamese", size="LARGE")
        entry = CatalogEntry.objects.create(
            name="Bath",
            duration_minutes=60,
            price_small=Decimal("40.00"),
            price_medium=Decimal("50.00"),
            price_large=Decimal("70.00"),
        )
        self.appointment = Appointment.objects.create(
            owner=owner,
            pet=pet,
            scheduled_at=timezone.now() + timedelta(days=1),
            total_gross=Decimal("70.00"),
        )
        AppointmentItem.objects.create(
            appointment=self.appointment,
            catalog_entry=entry,
            quantity=1,
            unit_price_applied=Decimal("70.00"),
            subtotal=Decimal("70.00"),
        )

    def test_retrieve_returns_items(self):
        response = self.client.get(f"/api/appointments/{self.appointment.id}/")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["total_gross"], "70.00")
        self.assertEqual(data["status"], "SCHEDULED")
        self.assertEqual(len(data["items"]), 1)
        self.assertEqual(data["items"][0]["catalog_name"], "Bath")

    def test_retrieve_unknown_returns_404_standard_format(self):
        response = self.client.get("/api/appointments/999999/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "NOT_FOUND")

    def test_appointments_cannot_be_deleted(self):
        response = self.client.delete(f"/api/appointments/{self.appointment.id}/")
        self.assertEqual(response.status_code, 405)
