"""
Authentication application.

Email-based customer and staff accounts with JWT authentication.

Key components:
    - User model: Custom email-based user
    - UserManager: create_user / create_superuser
    - Register and current-user endpoints (tokens via simplejwt)

Staff roles are Django groups holding model permissions
(orders.manage_returns, payments.manage_refunds, ...). The groups are
defined in roles.py and created with ``manage.py seed_roles``.
"""
