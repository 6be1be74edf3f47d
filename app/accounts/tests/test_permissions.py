"""
Tests for back-office permission classes.

Read methods are open to any user attached to a company; writes depend on
the user's role.
"""

import pytest
from django.contrib.auth.models import AnonymousUser
from rest_framework.test import APIRequestFactory

from accounts.models import UserRole
from accounts.permissions import BelongsToCompany, IsAccountingStaff, IsContractManager
from accounts.tests.factories import UserFactory


@pytest.fixture
def rf():
    return APIRequestFactory()


def _request(rf, method, user):
    request = getattr(rf, method)("/")
    request.user = user
    return request


@pytest.mark.django_db
class TestBelongsToCompany:
    def test_user_without_company(self, rf):
        user = UserFactory(company=None)

        assert not BelongsToCompany().has_permission(_request(rf, "get", user), None)

    def test_anonymous(self, rf):
        assert not BelongsToCompany().has_permission(_request(rf, "get", AnonymousUser()), None)


@pytest.mark.django_db
class TestIsAccountingStaff:
    @pytest.mark.parametrize("role", [UserRole.ADMIN, UserRole.ACCOUNTING])
    def test_accounting_roles_can_write(self, rf, role):
        user = UserFactory(role=role)

        assert IsAccountingStaff().has_permission(_request(rf, "post", user), None)

    @pytest.mark.parametrize(
        "role", [UserRole.COORDINATOR, UserRole.COMMERCIAL, UserRole.DRIVER, UserRole.OWNER]
    )
    def test_other_roles_can_only_read(self, rf, role):
        user = UserFactory(role=role)

        assert IsAccountingStaff().has_permission(_request(rf, "get", user), None)
        assert not IsAccountingStaff().has_permission(_request(rf, "post", user), None)

    def test_superuser_can_write(self, rf):
        user = UserFactory(role=UserRole.DRIVER, is_superuser=True)

        assert IsAccountingStaff().has_permission(_request(rf, "post", user), None)


@pytest.mark.django_db
@pytest.mark.parametrize(
    "role, allowed",
    [
        (UserRole.COMMERCIAL, True),
        (UserRole.COORDINATOR, True),
        (UserRole.ACCOUNTING, True),
        (UserRole.DRIVER, False),
        (UserRole.OWNER, False),
    ],
)
def test_contract_manager_roles(rf, role, allowed):
    user = UserFactory(role=role)

    assert IsContractManager().has_permission(_request(rf, "post", user), None) is allowed
