"""
Serializers for authentication models.

Security:
    - Password fields are write-only
    - Email and staff flags are read-only on the current-user endpoint
"""

from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """Current user representation returned by /auth/me/."""

    full_name = serializers.CharField(read_only=True)
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "first_name",
            "last_name",
            "full_name",
            "phone_number",
            "is_staff",
            "permissions",
            "date_joined",
        ]
        read_only_fields = ["id", "email", "is_staff", "permissions", "date_joined"]

    def get_permissions(self, obj):
        """Permission codenames the frontend uses to show staff screens."""
        if not obj.is_staff:
            return []
        return sorted(obj.get_all_permissions())


class RegisterSerializer(serializers.Serializer):
    """
    Serializer for customer registration.

    Validates email uniqueness and password strength with Django's
    configured password validators.
    """

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, style={"input_type": "password"})
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    phone_number = serializers.CharField(max_length=20, required=False, allow_blank=True)

    def validate_email(self, value):
        value = value.lower()
        if User.objects.filter(email=value).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value

    def validate_password(self, value):
        validate_password(value)
        return value

    def create(self, validated_data):
        return User.objects.create_user(**validated_data)
