from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register("owners", views.OwnerViewSet, basename="owner")
router.register("pets", views.PetViewSet, basename="pet")
router.register("catalog", views.CatalogEntryViewSet, basename="catalog")
router.register("appointments", views.AppointmentViewSet, basename="appointment")

urlpatterns = [
    path("health/", views.health),
    path("auth/login/", views.LoginView.as_view(), name="token_obtain_pair"),
    path("auth/refresh/", views.RefreshTokenView.as_view(), name="token_refresh"),
    path("", include(router.urls)),
]
