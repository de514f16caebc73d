"""
Tests for the authentication app.

This package contains:
- factories.py: UserFactory, shared with the marketplace and vault tests
- test_managers.py: UserManager tests

Usage:
    pytest authentication/tests/
"""
