"""
pytest configuration and shared fixtures for business rules tests.
"""
from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from tests.factories import UserFactory


@pytest.fixture
def staff_user(db):
    return UserFactory(role="ATTENDANT")


@pytest.fixture
def manager_user(db):
    return UserFactory(role="MANAGER")


@pytest.fixture
def api_client(staff_user):
    """APIClient authenticated as an attendant."""
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


@pytest.fixture
def manager_client(manager_user):
    client = APIClient()
    client.force_authenticate(user=manager_user)
    return client


@pytest.fixture
def tomorrow():
    """A schedule slot one day ahead, truncated to whole seconds."""
    return (timezone.now() + timedelta(days=1)).replace(microsecond=0)
