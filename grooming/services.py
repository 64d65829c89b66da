"""
Service Layer for business logic.

This module contains service classes that encapsulate the appointment
lifecycle and billing rules and orchestrate operations across models.
Every mutation of an existing appointment runs inside appointment_gate.
"""
import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from .billing import BillingCalculator
from .exceptions import (
    AppointmentConflictError,
    AppointmentLockedError,
    AppointmentStateError,
    DomainRuleError,
    InactiveCatalogEntryError,
    InactiveOwnerError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    PaymentAlreadyRegisteredError,
)
from .locks import appointment_gate
from .models import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentItem,
    CatalogEntry,
    Owner,
    Payment,
    Pet,
)
from .money import quantize_money, zero_money
from .pricing import resolve_unit_price

logger = logging.getLogger(__name__)


def get_or_not_found(model, pk, label):
    try:
        return model.objects.get(pk=pk)
    except model.DoesNotExist:
        raise NotFoundError(f"{label} not found.")


class EligibilityChecker:
    """Checks evaluated before any appointment mutation."""

    @classmethod
    def has_appointment_at(cls, pet_id, scheduled_at, statuses=OPEN_STATUSES):
        return Appointment.objects.filter(
            pet_id=pet_id, scheduled_at=scheduled_at, status__in=statuses
        ).exists()

    @classmethod
    def owner_has_appointments(cls, owner_id, statuses=OPEN_STATUSES):
        return Appointment.objects.filter(owner_id=owner_id, status__in=statuses).exists()

    @classmethod
    def ensure_owner_active(cls, owner, message):
        if not owner.is_active:
            logger.warning("Inactive owner blocked", extra={"owner_id": owner.id})
            raise InactiveOwnerError(message)

    @classmethod
    def ensure_pet_belongs_to_owner(cls, pet, owner):
        if pet.owner_id != owner.id:
            logger.warning(
                "Pet does not belong to owner",
                extra={"owner_id": owner.id, "pet_id": pet.id, "pet_owner_id": pet.owner_id},
            )
            raise DomainRuleError("Pet does not belong to the provided owner.")

    @classmethod
    def ensure_future(cls, scheduled_at, now=None):
        now = now or timezone.now()
        if scheduled_at < now:
            logger.warning("Schedule in the past", extra={"scheduled_at": scheduled_at.isoformat()})
            raise DomainRuleError("Scheduled date/time cannot be in the past.")

    @classmethod
    def ensure_slot_free(cls, pet_id, scheduled_at):
        if cls.has_appointment_at(pet_id, scheduled_at):
            logger.warning(
                "Scheduling conflict",
                extra={"pet_id": pet_id, "scheduled_at": scheduled_at.isoformat()},
            )
            raise AppointmentConflictError()


class ItemAggregator:
    """Builds line items and keeps an appointment's total in sync with them."""

    @classmethod
    def build_items(cls, appointment, pet, requests):
        """
        Build unsaved AppointmentItems from (catalog_id, quantity) requests.

        Args:
            appointment: Appointment receiving the items (not locked)
            pet: the appointment's pet, for size-based pricing
            requests: iterable of dicts with catalog_id and quantity

        Raises:
            InvalidInputError: missing catalog id or quantity below 1
            NotFoundError: unknown catalog entry
            DomainRuleError: inactive catalog entry or non-positive price
        """
        items = []
        for request in requests:
            catalog_id = request.get("catalog_id")
            quantity = request.get("quantity")
            if catalog_id is None:
                logger.warning("build_items invalid input: catalog_id is missing", extra={"appointment_id": appointment.id})
                raise InvalidInputError("Catalog ID is required.")

            try:
                entry = CatalogEntry.objects.get(pk=catalog_id)
            except CatalogEntry.DoesNotExist:
                logger.warning(
                    "build_items failed: catalog entry not found",
                    extra={"catalog_id": catalog_id, "appointment_id": appointment.id},
                )
                raise NotFoundError("Catalog item not found.")

            if not entry.is_active:
                logger.warning(
                    "build_items blocked: inactive catalog entry",
                    extra={"catalog_id": entry.id, "appointment_id": appointment.id},
                )
                raise InactiveCatalogEntryError()

            if quantity is None or quantity < 1:
                logger.warning(
                    "build_items invalid input: quantity",
                    extra={"quantity": quantity, "catalog_id": entry.id},
                )
                raise InvalidInputError("Quantity must be at least 1.")

            unit_price = resolve_unit_price(entry, pet.size)
            try:
                items.append(AppointmentItem.build(appointment, entry, quantity, unit_price))
            except AppointmentStateError as exc:
                raise DomainRuleError(str(exc)) from exc
        return items

    @classmethod
    def recompute_total(cls, appointment):
        """
        Re-read every item of the appointment, write the rounded sum of their
        subtotals as total_gross and persist it. Returns the full item list.
        """
        items = list(appointment.items.select_related("catalog_entry").order_by("id"))
        total = quantize_money(sum((item.subtotal for item in items), zero_money()))
        try:
            appointment.update_total_gross(total)
        except AppointmentStateError as exc:
            raise DomainRuleError(str(exc)) from exc
        appointment.save(update_fields=["total_gross", "updated_at"])
        return items


class AppointmentService:
    """Service for managing the Appointment lifecycle."""

    ACTIONS = ("START", "CLOSE_FOR_PAYMENT", "CANCEL")

    @classmethod
    def create(cls, owner_id, pet_id, scheduled_at, items):
        """
        Schedule a new appointment with its initial items.

        Returns:
            tuple: (Appointment, list of AppointmentItem)
        """
        logger.info(
            "create_appointment started",
            extra={"owner_id": owner_id, "pet_id": pet_id, "items_count": len(items or [])},
        )
        owner = get_or_not_found(Owner, owner_id, "Owner")
        EligibilityChecker.ensure_owner_active(owner, "Inactive owners cannot create appointments.")

        pet = get_or_not_found(Pet, pet_id, "Pet")
        EligibilityChecker.ensure_pet_belongs_to_owner(pet, owner)

        if scheduled_at is None:
            raise InvalidInputError("Scheduled date/time is required.")
        EligibilityChecker.ensure_future(scheduled_at)

        if not items:
            raise InvalidInputError("At least one service item must be provided.")

        with transaction.atomic():
            EligibilityChecker.ensure_slot_free(pet.id, scheduled_at)
            try:
                with transaction.atomic():
                    appointment = Appointment.objects.create(owner=owner, pet=pet, scheduled_at=scheduled_at)
            except IntegrityError:
                logger.warning(
                    "Scheduling conflict caught by constraint",
                    extra={"pet_id": pet.id, "scheduled_at": scheduled_at.isoformat()},
                )
                raise AppointmentConflictError()

            for item in ItemAggregator.build_items(appointment, pet, items):
                item.save()
            saved_items = ItemAggregator.recompute_total(appointment)

        logger.info(
            "create_appointment completed",
            extra={
                "appointment_id": appointment.id,
                "status": appointment.status,
                "total_gross": str(appointment.total_gross),
                "items_count": len(saved_items),
            },
        )
        return appointment, saved_items

    @classmethod
    def add_items(cls, appointment_id, items):
        """Attach new items and recompute the total over all items of the appointment."""
        logger.info(
            "add_items started",
            extra={"appointment_id": appointment_id, "items_count": len(items or [])},
        )
        if not items:
            raise InvalidInputError("At least one service item must be provided.")

        with appointment_gate.hold(appointment_id) as appointment:
            if appointment.is_canceled:
                logger.warning("add_items blocked: canceled", extra={"appointment_id": appointment.id})
                raise DomainRuleError("Canceled appointments cannot be modified.")
            if appointment.is_locked:
                logger.warning(
                    "add_items blocked: locked",
                    extra={"appointment_id": appointment.id, "status": appointment.status},
                )
                raise AppointmentLockedError()
            EligibilityChecker.ensure_owner_active(
                appointment.owner, "Appointments from inactive owners cannot be updated."
            )

            for item in ItemAggregator.build_items(appointment, appointment.pet, items):
                item.save()
            all_items = ItemAggregator.recompute_total(appointment)

        logger.info(
            "add_items completed",
            extra={
                "appointment_id": appointment.id,
                "total_gross": str(appointment.total_gross),
                "items_count": len(all_items),
            },
        )
        return appointment, all_items

    @classmethod
    def apply_action(cls, appointment_id, action):
        """
        Apply a lifecycle action: START, CLOSE_FOR_PAYMENT or CANCEL.

        Raises:
            InvalidInputError: unknown action
            InvalidTransitionError: action not allowed from the current status
        """
        logger.info("apply_action started", extra={"appointment_id": appointment_id, "action": action})
        if action not in cls.ACTIONS:
            raise InvalidInputError(f"Unsupported action: {action!r}. Allowed: {list(cls.ACTIONS)}")

        with appointment_gate.hold(appointment_id) as appointment:
            EligibilityChecker.ensure_owner_active(
                appointment.owner, "Appointments from inactive owners cannot be updated."
            )
            before = appointment.status
            try:
                if action == "START":
                    appointment.start()
                elif action == "CLOSE_FOR_PAYMENT":
                    appointment.close_for_payment(timezone.now())
                else:
                    appointment.cancel()
            except AppointmentStateError as exc:
                logger.warning(
                    "apply_action blocked by state rule",
                    extra={"appointment_id": appointment.id, "action": action, "status": before, "reason": str(exc)},
                )
                raise InvalidTransitionError(str(exc), current_status=before, action=action) from exc

            appointment.save(update_fields=["status", "closed_at", "updated_at"])
            items = list(appointment.items.select_related("catalog_entry").order_by("id"))

        logger.info(
            "apply_action completed",
            extra={"appointment_id": appointment.id, "action": action, "status_before": before, "status_after": appointment.status},
        )
        return appointment, items

    @classmethod
    def get(cls, appointment_id):
        try:
            return cls.detailed_queryset().get(pk=appointment_id)
        except Appointment.DoesNotExist:
            logger.warning("Appointment not found", extra={"appointment_id": appointment_id})
            raise NotFoundError("Appointment not found.")

    @classmethod
    def detailed_queryset(cls):
        return Appointment.objects.select_related("owner", "pet").prefetch_related("items__catalog_entry")

    @classmethod
    def list_future(cls, status=None, now=None):
        """Appointments scheduled after now, soonest first. Only open statuses may be filtered."""
        if status is None:
            statuses = OPEN_STATUSES
        else:
            cls._validate_status(status)
            if status in TERMINAL_STATUSES:
                raise InvalidInputError("Status filter must be an active status for future appointments.")
            statuses = (status,)
        now = now or timezone.now()
        return cls.detailed_queryset().filter(scheduled_at__gt=now, status__in=statuses).order_by("scheduled_at", "id")

    @classmethod
    def list_history(cls, status=None, now=None):
        """Appointments scheduled before now, latest first."""
        qs = cls.detailed_queryset().filter(scheduled_at__lt=now or timezone.now())
        if status is not None:
            cls._validate_status(status)
            qs = qs.filter(status=status)
        return qs.order_by("-scheduled_at", "-id")

    @staticmethod
    def _validate_status(status):
        if status not in dict(Appointment.STATUS_CHOICES):
            raise InvalidInputError(f"Unknown appointment status: {status!r}.")


class PaymentService:
    """Registers the payment that closes an appointment."""

    @classmethod
    def register(cls, appointment_id, method, installments=None, calculator=None):
        """
        Record an approved payment and complete the appointment atomically.

        Returns:
            Payment: the stored payment
        """
        logger.info(
            "register_payment started",
            extra={"appointment_id": appointment_id, "method": method, "installments": installments},
        )
        calculator = calculator or BillingCalculator()

        with appointment_gate.hold(appointment_id) as appointment:
            if appointment.payments.filter(status="APPROVED").exists():
                logger.warning("register_payment blocked: already paid", extra={"appointment_id": appointment.id})
                raise PaymentAlreadyRegisteredError()
            if appointment.status != "WAITING_PAYMENT":
                logger.warning(
                    "register_payment blocked: wrong status",
                    extra={"appointment_id": appointment.id, "status": appointment.status},
                )
                raise DomainRuleError("Payment can only be registered when appointment is WAITING_PAYMENT.")
            EligibilityChecker.ensure_owner_active(
                appointment.owner, "Appointments from inactive owners cannot be paid."
            )

            resolved = calculator.resolve_installments(method, installments)
            final_amount = calculator.calculate_final_amount(appointment.total_gross, method, resolved)

            try:
                payment = Payment.build_approved(appointment, method, resolved, final_amount, timezone.now())
                appointment.complete()
            except AppointmentStateError as exc:
                raise DomainRuleError(str(exc)) from exc
            payment.save()
            appointment.save(update_fields=["status", "updated_at"])

        logger.info(
            "register_payment completed",
            extra={
                "appointment_id": appointment.id,
                "payment_id": payment.id,
                "total_gross": str(appointment.total_gross),
                "final_amount": str(payment.final_amount),
            },
        )
        return payment


class OwnerService:
    """Owner status changes. Deactivation is blocked while the owner has open appointments."""

    ACTIONS = ("ACTIVATE", "DEACTIVATE")

    @classmethod
    def find_by_cpf(cls, cpf):
        """Look an owner up by CPF, accepting masked input such as 390.533.447-05."""
        digits = "".join(filter(str.isdigit, cpf or ""))
        if not digits:
            raise InvalidInputError("CPF must be provided.")
        if len(digits) != 11:
            raise InvalidInputError("CPF must contain exactly 11 digits.")
        try:
            return Owner.objects.get(cpf=digits)
        except Owner.DoesNotExist:
            logger.warning("find_owner_by_cpf failed: owner not found", extra={"cpf_suffix": digits[-2:]})
            raise NotFoundError("Owner not found.")

    @classmethod
    def apply_action(cls, owner_id, action):
        if action not in cls.ACTIONS:
            raise InvalidInputError(f"Unsupported action: {action!r}. Allowed: {list(cls.ACTIONS)}")

        with transaction.atomic():
            try:
                owner = Owner.objects.select_for_update().get(pk=owner_id)
            except Owner.DoesNotExist:
                raise NotFoundError("Owner not found.")
            before = owner.status

            if action == "ACTIVATE":
                if owner.is_active:
                    raise DomainRuleError("Owner is already active.")
                owner.activate()
            else:
                if not owner.is_active:
                    raise DomainRuleError("Owner is already inactive.")
                if EligibilityChecker.owner_has_appointments(owner.id):
                    logger.warning("deactivate_owner blocked: open appointments", extra={"owner_id": owner.id})
                    raise DomainRuleError("Owner cannot be inactivated while there are open appointments.")
                owner.deactivate()
            owner.save(update_fields=["status"])

        logger.info(
            "owner action applied",
            extra={"owner_id": owner.id, "action": action, "status_before": before, "status_after": owner.status},
        )
        return owner


class CatalogService:
    ACTIONS = ("ACTIVATE", "DEACTIVATE")

    @classmethod
    def apply_action(cls, entry_id, action):
        if action not in cls.ACTIONS:
            raise InvalidInputError(f"Unsupported action: {action!r}. Allowed: {list(cls.ACTIONS)}")

        entry = get_or_not_found(CatalogEntry, entry_id, "Catalog item")
        if action == "ACTIVATE":
            if entry.is_active:
                raise DomainRuleError("Catalog item is already active.")
            entry.activate()
        else:
            if not entry.is_active:
                raise DomainRuleError("Catalog item is already inactive.")
            entry.deactivate()
        entry.save(update_fields=["status"])
        logger.info("catalog action applied", extra={"catalog_id": entry.id, "action": action})
        return entry

    @classmethod
    def delete(cls, entry):
        if entry.appointment_items.exists():
            logger.warning("delete_catalog_item blocked: referenced by appointments", extra={"catalog_id": entry.id})
            raise DomainRuleError("Catalog items used by appointments cannot be deleted. Deactivate it instead.")
        entry_id = entry.id
        entry.delete()
        logger.info("catalog item deleted", extra={"catalog_id": entry_id})


class PetService:
    @classmethod
    def delete(cls, pet):
        """Remove a pet. Blocked for inactive owners and for pets with appointment history."""
        if not pet.owner.is_active:
            logger.warning("delete_pet blocked: inactive owner", extra={"pet_id": pet.id, "owner_id": pet.owner_id})
            raise InactiveOwnerError("Pets from inactive owners cannot be updated.")
        if pet.appointments.exists():
            logger.warning("delete_pet blocked: appointment history", extra={"pet_id": pet.id})
            raise DomainRuleError("Pets with appointments cannot be deleted.")
        pet_id = pet.id
        pet.delete()
        logger.info("pet deleted", extra={"pet_id": pet_id})
