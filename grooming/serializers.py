from django.utils import timezone
from drf_spectacular.utils import extend_schema_field
from pycpfcnpj import cpfcnpj
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .exceptions import DomainRuleError, InactiveOwnerError
from .models import MAX_INSTALLMENTS, Appointment, AppointmentItem, CatalogEntry, Owner, Payment, Pet
from .services import AppointmentService, CatalogService, OwnerService


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Custom JWT serializer that includes the staff role in the token payload."""

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token["role"] = user.role
        token["email"] = user.email
        return token


class OwnerSerializer(serializers.ModelSerializer):
    """Serializer for Owner CRUD with CPF and phone normalization. Status is read-only."""

    class Meta:
        model = Owner
        fields = ["id", "name", "cpf", "phone", "email", "address", "status", "created_at"]
        read_only_fields = ["id", "status", "created_at"]
        # raw input may carry a mask; validate_cpf / validate_phone strip it to 11 digits
        extra_kwargs = {
            "cpf": {"validators": [], "max_length": 14},
            "phone": {"max_length": 20},
        }

    def validate_cpf(self, value):
        digits = "".join(filter(str.isdigit, value or ""))
        if len(digits) != 11 or not cpfcnpj.validate(digits):
            raise serializers.ValidationError("Invalid CPF.")
        return digits

    def validate_phone(self, value):
        digits = "".join(filter(str.isdigit, value or ""))
        if len(digits) not in (10, 11):
            raise serializers.ValidationError("Phone must have 10 or 11 digits.")
        return digits

    def validate(self, attrs):
        attrs = super().validate(attrs)
        cpf = attrs.get("cpf")
        if self.instance is not None:
            if cpf and cpf != self.instance.cpf:
                raise serializers.ValidationError({"cpf": "CPF cannot be changed."})
            if not self.instance.is_active:
                raise InactiveOwnerError("Inactive owners cannot be updated.")
        elif cpf and Owner.objects.filter(cpf=cpf).exists():
            raise DomainRuleError("CPF already exists.")
        return attrs


class OwnerActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=OwnerService.ACTIONS)


class PetSerializer(serializers.ModelSerializer):
    """Serializer for Pet CRUD. Size is fixed at creation."""

    owner = serializers.PrimaryKeyRelatedField(queryset=Owner.objects.all())

    class Meta:
        model = Pet
        fields = ["id", "owner", "name", "species", "breed", "size", "birth_date", "notes", "allergies"]
        read_only_fields = ["id"]
        validators = []

    def validate_name(self, value):
        value = (value or "").strip()
        if len(value) < 2:
            raise serializers.ValidationError("Name must be between 2 and 30 characters.")
        return value

    def validate_birth_date(self, value):
        if value is not None and value > timezone.localdate():
            raise serializers.ValidationError("Birth date cannot be in the future.")
        return value

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if self.instance is not None:
            for field in ("owner", "size"):
                if field in attrs and attrs[field] != getattr(self.instance, field):
                    raise serializers.ValidationError({field: "This field cannot be changed."})
        owner = attrs.get("owner") or self.instance.owner
        if not owner.is_active:
            raise InactiveOwnerError("Pets from inactive owners cannot be created or updated.")
        name = attrs.get("name")
        if name:
            duplicates = Pet.objects.filter(owner=owner, name__iexact=name)
            if self.instance is not None:
                duplicates = duplicates.exclude(pk=self.instance.pk)
            if duplicates.exists():
                raise DomainRuleError("This owner already has a pet with the same name.")
        return attrs


class CatalogEntrySerializer(serializers.ModelSerializer):
    """Serializer for catalog CRUD. Validates prices > 0 and duration >= 1 minute."""

    class Meta:
        model = CatalogEntry
        fields = [
            "id",
            "name",
            "description",
            "duration_minutes",
            "price_small",
            "price_medium",
            "price_large",
            "status",
        ]
        read_only_fields = ["id", "status"]
        extra_kwargs = {"name": {"validators": []}}

    def _validate_price(self, value):
        if value is not None and value <= 0:
            raise serializers.ValidationError("Price must be greater than zero.")
        return value

    validate_price_small = _validate_price
    validate_price_medium = _validate_price
    validate_price_large = _validate_price

    def validate_duration_minutes(self, value):
        if value is not None and value < 1:
            raise serializers.ValidationError("Duration must be at least 1 minute.")
        return value

    def validate(self, attrs):
        attrs = super().validate(attrs)
        name = attrs.get("name")
        if name:
            duplicates = CatalogEntry.objects.filter(name__iexact=name.strip())
            if self.instance is not None:
                duplicates = duplicates.exclude(pk=self.instance.pk)
            if duplicates.exists():
                raise DomainRuleError("Catalog item with this name already exists.")
        return attrs


class CatalogActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=CatalogService.ACTIONS)


class AppointmentItemInputSerializer(serializers.Serializer):
    catalog_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)


class AppointmentCreateSerializer(serializers.Serializer):
    """Request body for POST /appointments/."""

    owner_id = serializers.IntegerField()
    pet_id = serializers.IntegerField()
    scheduled_at = serializers.DateTimeField()
    items = AppointmentItemInputSerializer(many=True, allow_empty=False)


class AppointmentItemsAddSerializer(serializers.Serializer):
    """Request body for POST /appointments/{id}/items/."""

    items = AppointmentItemInputSerializer(many=True, allow_empty=False)


class AppointmentActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=AppointmentService.ACTIONS)


class PaymentInputSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES)
    installments = serializers.IntegerField(
        required=False, allow_null=True, min_value=1, max_value=MAX_INSTALLMENTS
    )


class AppointmentItemSerializer(serializers.ModelSerializer):
    catalog_id = serializers.IntegerField(source="catalog_entry_id", read_only=True)
    catalog_name = serializers.CharField(source="catalog_entry.name", read_only=True)

    class Meta:
        model = AppointmentItem
        fields = ["id", "catalog_id", "catalog_name", "quantity", "unit_price_applied", "subtotal"]
        read_only_fields = fields


class AppointmentSerializer(serializers.ModelSerializer):
    """Read-only appointment snapshot with its items."""

    owner_id = serializers.IntegerField(read_only=True)
    pet_id = serializers.IntegerField(read_only=True)
    items = serializers.SerializerMethodField()

    class Meta:
        model = Appointment
        fields = ["id", "owner_id", "pet_id", "scheduled_at", "status", "total_gross", "closed_at", "items"]
        read_only_fields = fields

    @extend_schema_field(AppointmentItemSerializer(many=True))
    def get_items(self, obj):
        items = self.context.get("items")
        if items is None:
            items = obj.items.all()
        return AppointmentItemSerializer(items, many=True).data


class PaymentSerializer(serializers.ModelSerializer):
    appointment_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Payment
        fields = ["id", "appointment_id", "method", "status", "installments", "final_amount", "created_at"]
        read_only_fields = fields
