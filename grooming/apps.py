from django.apps import AppConfig


class GroomingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "grooming"
    verbose_name = "Pet grooming"
