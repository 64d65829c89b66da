from django.http import JsonResponse
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .models import CatalogEntry, Owner, Pet
from .permissions import IsManagerOrReadOnly, IsStaffMember
from .schema import ERROR_RESPONSES
from .serializers import (
    AppointmentActionSerializer,
    AppointmentCreateSerializer,
    AppointmentItemsAddSerializer,
    AppointmentSerializer,
    CatalogActionSerializer,
    CatalogEntrySerializer,
    CustomTokenObtainPairSerializer,
    OwnerActionSerializer,
    OwnerSerializer,
    PaymentInputSerializer,
    PaymentSerializer,
    PetSerializer,
)
from .services import AppointmentService, CatalogService, OwnerService, PaymentService, PetService

STATUS_PARAM = OpenApiParameter("status", str, description="Filter by status")


def health(request):
    """Health check endpoint - returns 200 OK."""
    return JsonResponse({"status": "ok"})


class LoginView(TokenObtainPairView):
    """POST /auth/login - returns access and refresh tokens with the staff role."""
    serializer_class = CustomTokenObtainPairSerializer


class RefreshTokenView(TokenRefreshView):
    """POST /auth/refresh - returns new access token."""
    pass


class OwnerViewSet(
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    """Owners. Listing shows ACTIVE owners unless ?status= is given. Status changes via /actions."""

    serializer_class = OwnerSerializer
    permission_classes = [IsStaffMember]
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        qs = Owner.objects.all()
        if self.action == "list":
            qs = qs.filter(status=self.request.query_params.get("status", "ACTIVE").upper())
        return qs

    @extend_schema(request=OwnerActionSerializer, responses={200: OwnerSerializer, **ERROR_RESPONSES})
    @action(detail=True, methods=["post"], url_path="actions")
    def apply_action(self, request, pk=None):
        """POST /owners/{id}/actions - ACTIVATE or DEACTIVATE (blocked while appointments are open)."""
        serializer = OwnerActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        owner = OwnerService.apply_action(pk, serializer.validated_data["action"])
        return Response(OwnerSerializer(owner).data)

    @extend_schema(responses={200: OwnerSerializer, **ERROR_RESPONSES})
    @action(detail=False, methods=["get"], url_path=r"by-cpf/(?P<cpf>[^/]+)")
    def by_cpf(self, request, cpf=None):
        """GET /owners/by-cpf/{cpf} - masked or digits-only CPF."""
        return Response(OwnerSerializer(OwnerService.find_by_cpf(cpf)).data)


class PetViewSet(viewsets.ModelViewSet):
    """CRUD for pets. Filter ?owner=<id>, ?species=."""

    serializer_class = PetSerializer
    permission_classes = [IsStaffMember]

    def get_queryset(self):
        qs = Pet.objects.select_related("owner")
        owner_id = self.request.query_params.get("owner")
        if owner_id and owner_id.isdigit():
            qs = qs.filter(owner_id=owner_id)
        species = self.request.query_params.get("species")
        if species:
            qs = qs.filter(species=species.upper())
        return qs

    def perform_destroy(self, instance):
        PetService.delete(instance)


class CatalogEntryViewSet(
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    """Service catalog. Filter ?status=ACTIVE|INACTIVE. Writes are restricted to managers."""

    serializer_class = CatalogEntrySerializer
    permission_classes = [IsManagerOrReadOnly]
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        qs = CatalogEntry.objects.all()
        status = self.request.query_params.get("status")
        if status:
            qs = qs.filter(status=status.upper())
        return qs

    @extend_schema(request=CatalogActionSerializer, responses={200: CatalogEntrySerializer, **ERROR_RESPONSES})
    @action(detail=True, methods=["post"], url_path="actions")
    def apply_action(self, request, pk=None):
        serializer = CatalogActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entry = CatalogService.apply_action(pk, serializer.validated_data["action"])
        return Response(CatalogEntrySerializer(entry).data)

    def perform_destroy(self, instance):
        CatalogService.delete(instance)


class AppointmentViewSet(viewsets.GenericViewSet):
    """
    Appointment lifecycle. All writes go through AppointmentService / PaymentService;
    snapshots are read-only.
    """

    serializer_class = AppointmentSerializer
    permission_classes = [IsStaffMember]
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        qs = AppointmentService.detailed_queryset().order_by("scheduled_at", "id")
        status = self.request.query_params.get("status")
        if status:
            qs = qs.filter(status=status.upper())
        return qs

    def _paginated(self, queryset):
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(AppointmentSerializer(page, many=True).data)
        return Response(AppointmentSerializer(queryset, many=True).data)

    def _snapshot(self, appointment, items, status=200):
        data = AppointmentSerializer(appointment, context={"items": items}).data
        return Response(data, status=status)

    @extend_schema(parameters=[STATUS_PARAM])
    def list(self, request):
        return self._paginated(self.get_queryset())

    @extend_schema(responses={200: AppointmentSerializer, **ERROR_RESPONSES})
    def retrieve(self, request, pk=None):
        appointment = AppointmentService.get(pk)
        return self._snapshot(appointment, list(appointment.items.all()))

    @extend_schema(request=AppointmentCreateSerializer, responses={201: AppointmentSerializer, **ERROR_RESPONSES})
    def create(self, request):
        """POST /appointments - schedule an appointment with its initial items."""
        serializer = AppointmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        appointment, items = AppointmentService.create(
            owner_id=data["owner_id"],
            pet_id=data["pet_id"],
            scheduled_at=data["scheduled_at"],
            items=data["items"],
        )
        return self._snapshot(appointment, items, status=201)

    @extend_schema(parameters=[STATUS_PARAM])
    @action(detail=False, methods=["get"], url_path="future")
    def future(self, request):
        """GET /appointments/future - upcoming open appointments, soonest first."""
        status = request.query_params.get("status")
        return self._paginated(AppointmentService.list_future(status.upper() if status else None))

    @extend_schema(parameters=[STATUS_PARAM])
    @action(detail=False, methods=["get"], url_path="history")
    def history(self, request):
        """GET /appointments/history - past appointments, latest first."""
        status = request.query_params.get("status")
        return self._paginated(AppointmentService.list_history(status.upper() if status else None))

    @extend_schema(request=AppointmentItemsAddSerializer, responses={200: AppointmentSerializer, **ERROR_RESPONSES})
    @action(detail=True, methods=["post"], url_path="items")
    def add_items(self, request, pk=None):
        """POST /appointments/{id}/items - add items and recompute the total."""
        serializer = AppointmentItemsAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        appointment, items = AppointmentService.add_items(int(pk), serializer.validated_data["items"])
        return self._snapshot(appointment, items)

    @extend_schema(request=AppointmentActionSerializer, responses={200: AppointmentSerializer, **ERROR_RESPONSES})
    @action(detail=True, methods=["post"], url_path="actions")
    def apply_action(self, request, pk=None):
        """POST /appointments/{id}/actions - START, CLOSE_FOR_PAYMENT or CANCEL."""
        serializer = AppointmentActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        appointment, items = AppointmentService.apply_action(int(pk), serializer.validated_data["action"])
        return self._snapshot(appointment, items)

    @extend_schema(request=PaymentInputSerializer, responses={201: PaymentSerializer, **ERROR_RESPONSES})
    @action(detail=True, methods=["post"], url_path="payments")
    def payments(self, request, pk=None):
        """POST /appointments/{id}/payments - register an approved payment and complete the appointment."""
        serializer = PaymentInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = PaymentService.register(
            int(pk),
            serializer.validated_data["method"],
            serializer.validated_data.get("installments"),
        )
        return Response(PaymentSerializer(payment).data, status=201)
