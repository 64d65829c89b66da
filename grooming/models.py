from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.db.models import Q

from .exceptions import AppointmentStateError
from .money import quantize_money, zero_money

STATUS_CHOICES = [
    ("ACTIVE", "Active"),
    ("INACTIVE", "Inactive"),
]

SIZE_CHOICES = [
    ("SMALL", "Small"),
    ("MEDIUM", "Medium"),
    ("LARGE", "Large"),
]

# Appointment statuses that still hold a slot and block owner deactivation
OPEN_STATUSES = ("SCHEDULED", "IN_PROGRESS", "WAITING_PAYMENT")
LOCKED_STATUSES = ("WAITING_PAYMENT", "COMPLETED")
TERMINAL_STATUSES = ("COMPLETED", "CANCELED")

MAX_INSTALLMENTS = 6


class UserManager(BaseUserManager):
    """Custom manager for User with email as username."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("Email is required")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        return self.create_user(email, password, **extra_fields)


class User(AbstractUser):
    """Shop staff account with email login and role."""

    ROLE_CHOICES = [
        ("MANAGER", "Manager"),
        ("ATTENDANT", "Attendant"),
    ]

    username = None
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default="ATTENDANT")

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    def __str__(self):
        return self.email


class Owner(models.Model):
    """Pet owner. Status changes go through OwnerService.apply_action."""

    name = models.CharField(max_length=200)
    cpf = models.CharField(max_length=11, unique=True)
    phone = models.CharField(max_length=11)
    email = models.EmailField(blank=True)
    address = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="ACTIVE")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.cpf})"

    @property
    def is_active(self):
        return self.status == "ACTIVE"

    def activate(self):
        self.status = "ACTIVE"

    def deactivate(self):
        self.status = "INACTIVE"


class Pet(models.Model):
    """Pet linked to an owner. Size drives catalog pricing and never changes."""

    SPECIES_CHOICES = [
        ("DOG", "Dog"),
        ("CAT", "Cat"),
        ("OTHER", "Other"),
    ]

    owner = models.ForeignKey(Owner, on_delete=models.PROTECT, related_name="pets")
    name = models.CharField(max_length=30)
    species = models.CharField(max_length=10, choices=SPECIES_CHOICES)
    breed = models.CharField(max_length=100)
    size = models.CharField(max_length=10, choices=SIZE_CHOICES)
    birth_date = models.DateField(null=True, blank=True)
    notes = models.CharField(max_length=500, blank=True)
    allergies = models.CharField(max_length=500, blank=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["owner", "name"], name="unique_pet_name_per_owner"),
        ]

    def __str__(self):
        return f"{self.name} ({self.get_species_display()})"


class CatalogEntry(models.Model):
    """Billable grooming service with one price per pet size."""

    name = models.CharField(max_length=50, unique=True)
    description = models.CharField(max_length=255, blank=True)
    duration_minutes = models.PositiveIntegerField()
    price_small = models.DecimalField(max_digits=12, decimal_places=2)
    price_medium = models.DecimalField(max_digits=12, decimal_places=2)
    price_large = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="ACTIVE")

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "catalog entries"

    def __str__(self):
        return self.name

    @property
    def is_active(self):
        return self.status == "ACTIVE"

    def activate(self):
        self.status = "ACTIVE"

    def deactivate(self):
        self.status = "INACTIVE"


class Appointment(models.Model):
    """
    Grooming visit for one pet.

    State machine:
        SCHEDULED -> IN_PROGRESS -> WAITING_PAYMENT -> COMPLETED
        SCHEDULED | IN_PROGRESS -> CANCELED

    Transition methods only change the instance in memory; callers persist
    the result. Any guard violation raises AppointmentStateError.
    """

    STATUS_CHOICES = [
        ("SCHEDULED", "Scheduled"),
        ("IN_PROGRESS", "In progress"),
        ("WAITING_PAYMENT", "Waiting payment"),
        ("COMPLETED", "Completed"),
        ("CANCELED", "Canceled"),
    ]

    owner = models.ForeignKey(Owner, on_delete=models.PROTECT, related_name="appointments")
    pet = models.ForeignKey(Pet, on_delete=models.PROTECT, related_name="appointments")
    scheduled_at = models.DateTimeField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="SCHEDULED")
    total_gross = models.DecimalField(max_digits=12, decimal_places=2, default=zero_money)
    closed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["scheduled_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["pet", "scheduled_at"],
                condition=Q(status__in=OPEN_STATUSES),
                name="unique_open_slot_per_pet",
            ),
        ]

    def __str__(self):
        return f"{self.pet} @ {self.scheduled_at} [{self.status}]"

    @property
    def is_locked(self):
        return self.status in LOCKED_STATUSES

    @property
    def is_canceled(self):
        return self.status == "CANCELED"

    @property
    def is_open(self):
        return self.status in OPEN_STATUSES

    def start(self):
        if self.is_canceled:
            raise AppointmentStateError("Canceled appointments cannot be started.")
        if self.is_locked:
            raise AppointmentStateError("Appointments waiting for payment or completed cannot be started.")
        if self.status != "SCHEDULED":
            raise AppointmentStateError("Appointment is already in progress.")
        self.status = "IN_PROGRESS"

    def close_for_payment(self, now):
        if self.is_canceled:
            raise AppointmentStateError("Canceled appointments cannot be closed for payment.")
        if self.is_locked:
            raise AppointmentStateError("Appointment is already waiting for payment or completed.")
        if self.total_gross is None or self.total_gross <= 0:
            raise AppointmentStateError("Appointments without a positive total cannot be closed for payment.")
        self.status = "WAITING_PAYMENT"
        self.closed_at = now

    def cancel(self):
        if self.status == "WAITING_PAYMENT":
            raise AppointmentStateError("Appointments waiting for payment cannot be canceled.")
        if self.status == "COMPLETED":
            raise AppointmentStateError("Completed appointments cannot be canceled.")
        if self.is_canceled:
            raise AppointmentStateError("Appointment is already canceled.")
        self.status = "CANCELED"

    def complete(self):
        if self.status != "WAITING_PAYMENT":
            raise AppointmentStateError("Only appointments waiting for payment can be completed.")
        self.status = "COMPLETED"

    def update_total_gross(self, value):
        """Store the aggregated item total. Only called right after item aggregation."""
        if self.is_locked:
            raise AppointmentStateError("Cannot update the total of a locked appointment.")
        if value is None:
            raise AppointmentStateError("Total gross must be provided.")
        value = quantize_money(value)
        if value < 0:
            raise AppointmentStateError("Total gross cannot be negative.")
        self.total_gross = value


class AppointmentItem(models.Model):
    """
    Line item of an appointment. Immutable once saved: corrections are new items.
    unit_price_applied is a snapshot of the catalog price for the pet's size.
    """

    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name="items")
    catalog_entry = models.ForeignKey(CatalogEntry, on_delete=models.PROTECT, related_name="appointment_items")
    quantity = models.PositiveIntegerField()
    unit_price_applied = models.DecimalField(max_digits=12, decimal_places=2)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.quantity}x {self.catalog_entry} = {self.subtotal}"

    @classmethod
    def build(cls, appointment, catalog_entry, quantity, unit_price):
        if appointment is None or catalog_entry is None:
            raise AppointmentStateError("Appointment and catalog entry must be provided.")
        if appointment.is_locked:
            raise AppointmentStateError("Cannot add items when appointment is locked.")
        if quantity is None or quantity < 1:
            raise AppointmentStateError("Quantity must be >= 1.")
        price = quantize_money(unit_price)
        if price is None or price <= 0:
            raise AppointmentStateError("unit_price_applied must be > 0.")
        return cls(
            appointment=appointment,
            catalog_entry=catalog_entry,
            quantity=quantity,
            unit_price_applied=price,
            subtotal=quantize_money(price * quantity),
        )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AppointmentStateError("Appointment items are immutable once created.")
        super().save(*args, **kwargs)


class Payment(models.Model):
    """Settlement of an appointment. Gateway integration is out of scope: payments are recorded approved."""

    METHOD_CHOICES = [
        ("CASH", "Cash"),
        ("PIX", "Pix"),
        ("CARD", "Card"),
    ]

    STATUS_CHOICES = [
        ("PENDING", "Pending"),
        ("APPROVED", "Approved"),
        ("REJECTED", "Rejected"),
    ]

    appointment = models.ForeignKey(Appointment, on_delete=models.PROTECT, related_name="payments")
    method = models.CharField(max_length=10, choices=METHOD_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="PENDING")
    installments = models.PositiveSmallIntegerField(default=1)
    final_amount = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField()

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["appointment"],
                condition=Q(status="APPROVED"),
                name="one_approved_payment_per_appointment",
            ),
        ]

    def __str__(self):
        return f"Payment {self.id} - appointment {self.appointment_id} - {self.status}"

    @classmethod
    def _build(cls, appointment, method, status, installments, final_amount, created_at):
        if appointment is None or created_at is None:
            raise AppointmentStateError("Appointment and creation time must be provided.")
        if method not in dict(cls.METHOD_CHOICES):
            raise AppointmentStateError(f"Unknown payment method: {method!r}.")
        if installments is None or not 1 <= installments <= MAX_INSTALLMENTS:
            raise AppointmentStateError(f"Installments must be between 1 and {MAX_INSTALLMENTS}.")
        if method != "CARD" and installments != 1:
            raise AppointmentStateError("Installments must be 1 for PIX/CASH payments.")
        amount = quantize_money(final_amount)
        if amount is None or amount <= 0:
            raise AppointmentStateError("final_amount must be > 0.")
        return cls(
            appointment=appointment,
            method=method,
            status=status,
            installments=installments,
            final_amount=amount,
            created_at=created_at,
        )

    @classmethod
    def build_approved(cls, appointment, method, installments, final_amount, created_at):
        return cls._build(appointment, method, "APPROVED", installments, final_amount, created_at)

    @classmethod
    def build_pending(cls, appointment, method, installments, final_amount, created_at):
        return cls._build(appointment, method, "PENDING", installments, final_amount, created_at)

    def approve(self):
        if self.status != "PENDING":
            raise AppointmentStateError("Only PENDING payments can be approved.")
        self.status = "APPROVED"

    def reject(self):
        if self.status != "PENDING":
            raise AppointmentStateError("Only PENDING payments can be rejected.")
        self.status = "REJECTED"
