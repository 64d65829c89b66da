"""
Payment registration.

Only WAITING_PAYMENT appointments accept a payment. Registering stores an
APPROVED payment and completes the appointment in the same transaction.
An appointment has at most one approved payment.
"""
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from grooming.billing import BillingCalculator
from grooming.exceptions import (
    AppointmentStateError,
    DomainRuleError,
    InactiveOwnerError,
    InvalidInputError,
    PaymentAlreadyRegisteredError,
)
from grooming.models import Payment
from grooming.services import PaymentService
from tests.factories import AppointmentFactory, OwnerFactory, PaymentFactory


def _waiting(total="100.00", **kwargs):
    return AppointmentFactory(status="WAITING_PAYMENT", total_gross=Decimal(total), closed_at=timezone.now(), **kwargs)


@pytest.mark.django_db
class TestRegisterPayment:
    def test_pix_completes_appointment_with_discount(self):
        appointment = _waiting()

        payment = PaymentService.register(appointment.id, "PIX")

        assert payment.status == "APPROVED"
        assert payment.installments == 1
        assert payment.final_amount == Decimal("95.00")
        appointment.refresh_from_db()
        assert appointment.status == "COMPLETED"
        assert appointment.total_gross == Decimal("100.00")

    def test_card_two_installments_charges_gross(self):
        payment = PaymentService.register(_waiting().id, "CARD", 2)
        assert payment.final_amount == Decimal("100.00")
        assert payment.installments == 2

    def test_card_four_installments_with_injected_rate(self):
        calculator = BillingCalculator(interest_rate=Decimal("0.02"))
        payment = PaymentService.register(_waiting().id, "CARD", 4, calculator=calculator)
        assert payment.final_amount == Decimal("104.00")

    def test_second_payment_is_rejected(self):
        appointment = _waiting()
        PaymentService.register(appointment.id, "CASH")
        with pytest.raises(PaymentAlreadyRegisteredError):
            PaymentService.register(appointment.id, "PIX")
        assert appointment.payments.count() == 1

    @pytest.mark.parametrize("status", ["SCHEDULED", "IN_PROGRESS", "CANCELED"])
    def test_wrong_status_is_rejected(self, status):
        appointment = AppointmentFactory(status=status, total_gross=Decimal("100.00"))
        with pytest.raises(DomainRuleError, match="WAITING_PAYMENT"):
            PaymentService.register(appointment.id, "PIX")
        assert not appointment.payments.exists()

    def test_installments_on_instant_method_are_rejected(self):
        appointment = _waiting()
        with pytest.raises(InvalidInputError):
            PaymentService.register(appointment.id, "CASH", 3)
        appointment.refresh_from_db()
        assert appointment.status == "WAITING_PAYMENT"

    def test_card_without_installments_is_rejected(self):
        with pytest.raises(InvalidInputError, match="required"):
            PaymentService.register(_waiting().id, "CARD")

    def test_inactive_owner_cannot_pay(self):
        appointment = _waiting(owner=OwnerFactory(status="INACTIVE"))
        with pytest.raises(InactiveOwnerError):
            PaymentService.register(appointment.id, "PIX")

    def test_failure_after_payment_build_rolls_back(self):
        appointment = _waiting()
        with patch("grooming.models.Appointment.save", side_effect=IntegrityError("boom")):
            with pytest.raises(IntegrityError):
                PaymentService.register(appointment.id, "PIX")
        assert not appointment.payments.exists()
        appointment.refresh_from_db()
        assert appointment.status == "WAITING_PAYMENT"

    def test_approved_payment_constraint(self):
        payment = PaymentFactory()
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                PaymentFactory(appointment=payment.appointment)


class TestPaymentModel:
    def test_build_rejects_installments_on_pix(self):
        with pytest.raises(AppointmentStateError):
            Payment.build_approved(object(), "PIX", 2, Decimal("10"), timezone.now())

    def test_build_rejects_non_positive_amount(self):
        with pytest.raises(AppointmentStateError):
            Payment.build_pending(object(), "CARD", 3, Decimal("0"), timezone.now())

    def test_pending_payment_can_be_approved_once(self):
        payment = Payment(status="PENDING")
        payment.approve()
        assert payment.status == "APPROVED"
        with pytest.raises(AppointmentStateError):
            payment.approve()

    def test_pending_payment_can_be_rejected(self):
        payment = Payment(status="PENDING")
        payment.reject()
        assert payment.status == "REJECTED"
        with pytest.raises(AppointmentStateError):
            payment.reject()


@pytest.mark.django_db
class TestPaymentEndpoint:
    def test_register_via_api(self, api_client):
        appointment = _waiting()
        response = api_client.post(
            f"/api/appointments/{appointment.id}/payments/",
            {"method": "CARD", "installments": 4},
            format="json",
        )
        assert response.status_code == 201
        assert response.data["final_amount"] == "104.00"
        assert response.data["status"] == "APPROVED"
        assert response.data["appointment_id"] == appointment.id

    def test_already_paid_via_api_returns_409(self, api_client):
        payment = PaymentFactory()
        response = api_client.post(
            f"/api/appointments/{payment.appointment_id}/payments/", {"method": "PIX"}, format="json"
        )
        assert response.status_code == 409
        assert response.data["error"]["code"] == "ALREADY_PAID"

    def test_cash_with_installments_via_api_returns_400(self, api_client):
        appointment = _waiting()
        response = api_client.post(
            f"/api/appointments/{appointment.id}/payments/",
            {"method": "CASH", "installments": 2},
            format="json",
        )
        assert response.status_code == 400
        assert response.data["error"]["code"] == "INVALID_INPUT"

    def test_unknown_method_via_api_returns_400(self, api_client):
        appointment = _waiting()
        response = api_client.post(
            f"/api/appointments/{appointment.id}/payments/", {"method": "BOLETO"}, format="json"
        )
        assert response.status_code == 400
        assert response.data["error"]["code"] == "VALIDATION_ERROR"
