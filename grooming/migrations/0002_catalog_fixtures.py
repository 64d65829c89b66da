from decimal import Decimal

from django.db import migrations

CATALOG = [
    {
        "name": "Bath",
        "description": "Full bath with shampoo and drying",
        "duration_minutes": 60,
        "price_small": Decimal("50.00"),
        "price_medium": Decimal("70.00"),
        "price_large": Decimal("90.00"),
    },
    {
        "name": "Grooming",
        "description": "Hygienic or full haircut",
        "duration_minutes": 90,
        "price_small": Decimal("80.00"),
        "price_medium": Decimal("100.00"),
        "price_large": Decimal("130.00"),
    },
    {
        "name": "Nail trimming",
        "description": "Nail clipping and filing",
        "duration_minutes": 15,
        "price_small": Decimal("20.00"),
        "price_medium": Decimal("25.00"),
        "price_large": Decimal("30.00"),
    },
]


def create_catalog(apps, schema_editor):
    CatalogEntry = apps.get_model("grooming", "CatalogEntry")
    for entry in CATALOG:
        CatalogEntry.objects.get_or_create(name=entry["name"], defaults=entry)


def reverse(apps, schema_editor):
    CatalogEntry = apps.get_model("grooming", "CatalogEntry")
    CatalogEntry.objects.filter(name__in=[entry["name"] for entry in CATALOG], appointment_items__isnull=True).delete()


class Migration(migrations.Migration):
    dependencies = [("grooming", "0001_initial")]

    operations = [migrations.RunPython(create_catalog, reverse)]
