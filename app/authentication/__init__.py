"""
Authentication application.

This app provides the email-based User model shared by buyers, sellers,
delivery agents and staff operators. API clients authenticate with JWT
access tokens issued by djangorestframework-simplejwt.

Usage:
    from authentication.models import User
"""
