import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models

import grooming.models
import grooming.money


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="User",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("is_superuser", models.BooleanField(default=False, help_text="Designates that this user has all permissions without explicitly assigning them.", verbose_name="superuser status")),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="last name")),
                ("is_staff", models.BooleanField(default=False, help_text="Designates whether the user can log into this admin site.", verbose_name="staff status")),
                ("is_active", models.BooleanField(default=True, help_text="Designates whether this user should be treated as active. Unselect this instead of deleting accounts.", verbose_name="active")),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                ("email", models.EmailField(max_length=254, unique=True)),
                ("role", models.CharField(choices=[("MANAGER", "Manager"), ("ATTENDANT", "Attendant")], default="ATTENDANT", max_length=20)),
                ("groups", models.ManyToManyField(blank=True, help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.", related_name="user_set", related_query_name="user", to="auth.group", verbose_name="groups")),
                ("user_permissions", models.ManyToManyField(blank=True, help_text="Specific permissions for this user.", related_name="user_set", related_query_name="user", to="auth.permission", verbose_name="user permissions")),
            ],
            options={
                "verbose_name": "user",
                "verbose_name_plural": "users",
                "abstract": False,
            },
            managers=[
                ("objects", grooming.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name="CatalogEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=50, unique=True)),
                ("description", models.CharField(blank=True, max_length=255)),
                ("duration_minutes", models.PositiveIntegerField()),
                ("price_small", models.DecimalField(decimal_places=2, max_digits=12)),
                ("price_medium", models.DecimalField(decimal_places=2, max_digits=12)),
                ("price_large", models.DecimalField(decimal_places=2, max_digits=12)),
                ("status", models.CharField(choices=[("ACTIVE", "Active"), ("INACTIVE", "Inactive")], default="ACTIVE", max_length=10)),
            ],
            options={
                "ordering": ["name"],
                "verbose_name_plural": "catalog entries",
            },
        ),
        migrations.CreateModel(
            name="Owner",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("cpf", models.CharField(max_length=11, unique=True)),
                ("phone", models.CharField(max_length=11)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("address", models.CharField(blank=True, max_length=255)),
                ("status", models.CharField(choices=[("ACTIVE", "Active"), ("INACTIVE", "Inactive")], default="ACTIVE", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Pet",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=30)),
                ("species", models.CharField(choices=[("DOG", "Dog"), ("CAT", "Cat"), ("OTHER", "Other")], max_length=10)),
                ("breed", models.CharField(max_length=100)),
                ("size", models.CharField(choices=[("SMALL", "Small"), ("MEDIUM", "Medium"), ("LARGE", "Large")], max_length=10)),
                ("birth_date", models.DateField(blank=True, null=True)),
                ("notes", models.CharField(blank=True, max_length=500)),
                ("allergies", models.CharField(blank=True, max_length=500)),
                ("owner", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="pets", to="grooming.owner")),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.UniqueConstraint(fields=("owner", "name"), name="unique_pet_name_per_owner"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Appointment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("scheduled_at", models.DateTimeField()),
                ("status", models.CharField(choices=[("SCHEDULED", "Scheduled"), ("IN_PROGRESS", "In progress"), ("WAITING_PAYMENT", "Waiting payment"), ("COMPLETED", "Completed"), ("CANCELED", "Canceled")], default="SCHEDULED", max_length=20)),
                ("total_gross", models.DecimalField(decimal_places=2, default=grooming.money.zero_money, max_digits=12)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("owner", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="appointments", to="grooming.owner")),
                ("pet", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="appointments", to="grooming.pet")),
            ],
            options={
                "ordering": ["scheduled_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status__in", ("SCHEDULED", "IN_PROGRESS", "WAITING_PAYMENT"))),
                        fields=("pet", "scheduled_at"),
                        name="unique_open_slot_per_pet",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AppointmentItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity", models.PositiveIntegerField()),
                ("unit_price_applied", models.DecimalField(decimal_places=2, max_digits=12)),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=12)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("appointment", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="grooming.appointment")),
                ("catalog_entry", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="appointment_items", to="grooming.catalogentry")),
            ],
            options={
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("method", models.CharField(choices=[("CASH", "Cash"), ("PIX", "Pix"), ("CARD", "Card")], max_length=10)),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("APPROVED", "Approved"), ("REJECTED", "Rejected")], default="PENDING", max_length=20)),
                ("installments", models.PositiveSmallIntegerField(default=1)),
                ("final_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("created_at", models.DateTimeField()),
                ("appointment", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="grooming.appointment")),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "APPROVED")),
                        fields=("appointment",),
                        name="one_approved_payment_per_appointment",
                    ),
                ],
            },
        ),
    ]
