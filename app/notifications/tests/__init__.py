"""
Tests for notifications app.

This package contains test modules for:
- test_services.py: NotificationService creation and templating
- test_delivery.py: Email, SMS and in-app delivery tasks
- test_preferences.py: Global and per-type opt-outs
- test_views.py: API endpoint tests

Usage:
    pytest notifications/tests/
    pytest notifications/tests/test_services.py
"""
