from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from employees.models import Employee
from products.models import Product


@pytest.fixture
def drivers(db):
    return {
        "A": Employee.objects.create(id="EMP-001", name="Alice Kila", designation="driver"),
        "B": Employee.objects.create(id="EMP-002", name="Bob Tau", designation="driver"),
        "C": Employee.objects.create(id="EMP-003", name="Cathy Oa", designation="driver"),
    }


@pytest.fixture
def office_staff(db):
    return Employee.objects.create(id="EMP-090", name="Office Clerk", designation="staff")


@pytest.fixture
def products(db):
    return {
        "bread": Product.objects.create(id="PRD-001", name="Bread Loaf", category="bakery", unit_price=Decimal("100")),
        "milk": Product.objects.create(id="PRD-002", name="Milk 1L", category="fresh", unit_price=Decimal("100")),
        "yoghurt": Product.objects.create(id="PRD-003", name="Yoghurt", category="fresh", unit_price=Decimal("25")),
    }


@pytest.fixture
def user(db):
    User = get_user_model()
    return User.objects.create_user(username="clerk", email="clerk@example.com", password="pass", role="staff")


@pytest.fixture
def api_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client
