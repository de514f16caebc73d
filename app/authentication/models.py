"""
Authentication models.

This module defines the account model every marketplace party uses:
- User: Custom user model with email-based authentication

Buyers, sellers, delivery agents and staff operators are all Users. The
role a user plays is relative to an order (see marketplace.Order), not a
property of the account.

Related files:
    - managers.py: Custom user manager for email-based creation
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        full_name: Display name used in settlement notifications
        phone_number: Mobile number, the usual mobile money payout target
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin and operator actions
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        user = User.objects.create_user(
            email='buyer@example.com',
            password='securepassword'
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    full_name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="Display name shown in notifications",
    )
    phone_number = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Mobile number in international format",
    )

    # Account status flags
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site and operator actions.",
    )

    # Timestamps
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
        """Return the user's email as string representation."""
        return self.email

    def get_full_name(self):
        """Return the display name, falling back to the email."""
        return self.full_name or self.email

    def get_short_name(self):
        """Return the first word of the display name or the email local part."""
        if self.full_name:
            return self.full_name.split()[0]
        return self.email.split("@")[0]
