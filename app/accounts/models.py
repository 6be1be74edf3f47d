"""
Company and user models.

A Company is both the tenant that operates the fleet and, when it owns
affiliated vehicles, a payee of settlements. A User acts on behalf of one
company; a user who owns a vehicle personally is a payee too.
"""

from __future__ import annotations

import uuid

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from accounts.managers import UserManager


class UserRole(models.TextChoices):
    """Back-office roles. Authorization rules are enforced elsewhere."""

    ADMIN = "admin", "Admin"
    COORDINATOR = "coordinator", "Coordinator"
    ACCOUNTING = "accounting", "Accounting"
    COMMERCIAL = "commercial", "Commercial"
    DRIVER = "driver", "Driver"
    OWNER = "owner", "Vehicle owner"


class Company(UUIDPrimaryKeyMixin, BaseModel):
    """
    Operating company or vehicle-owner company.

    Fields:
        name: Legal or display name
        document: Tax identification number (NIT)
        email: Contact address used for settlement delivery
        phone: Contact phone
        is_active: Deactivate instead of deleting
    """

    name = models.CharField(
        max_length=255,
        help_text="Company display name",
    )
    document = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Tax identification number",
    )
    email = models.EmailField(
        blank=True,
        default="",
        help_text="Contact email for settlement delivery",
    )
    phone = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Contact phone number",
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this company is active",
    )

    class Meta:
        ordering = ["name"]
        verbose_name = "company"
        verbose_name_plural = "companies"

    def __str__(self) -> str:
        return self.name


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        full_name: Display name used on settlement documents
        company: Company the user acts for (nullable for platform staff)
        role: Back-office role
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this user",
    )

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    full_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="User's full name",
    )
    company = models.ForeignKey(
        Company,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="users",
        help_text="Company this user belongs to",
    )
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.COORDINATOR,
        help_text="Back-office role",
    )

    # Account status flags
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.full_name or self.email

    def get_short_name(self):
        return self.full_name.split(" ")[0] if self.full_name else self.email.split("@")[0]
