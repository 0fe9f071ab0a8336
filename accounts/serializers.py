# task_manager/accounts/serializers.py
import re

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from .models import username_validator

User = get_user_model()


def _run_password_validators(password, user=None):
    try:
        validate_password(password, user)
    except DjangoValidationError as exc:
        raise serializers.ValidationError(list(exc.messages))
    return password


class PasswordConfirmationMixin:
    """Rejects payloads whose password and confirmation differ."""
    password_field = 'password'

    def validate(self, attrs):
        if attrs[self.password_field] != attrs['confirm_password']:
            raise serializers.ValidationError({'confirm_password': 'Passwords do not match.'})
        return attrs


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'email']
        read_only_fields = fields


class UserRegistrationSerializer(PasswordConfirmationMixin, serializers.Serializer):
    email = serializers.EmailField(max_length=254)
    username = serializers.CharField(min_length=3, max_length=50, validators=[username_validator])
    password = serializers.CharField(write_only=True, min_length=8, max_length=100, style={'input_type': 'password'})
    confirm_password = serializers.CharField(write_only=True, style={'input_type': 'password'})

    def validate_password(self, value):
        return _run_password_validators(value)


class UserLoginSerializer(serializers.Serializer):
    identifier = serializers.CharField(help_text="Email or username")
    password = serializers.CharField(write_only=True, style={'input_type': 'password'})


class UserProfileUpdateSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=254, required=False)
    username = serializers.CharField(min_length=3, max_length=50, required=False, validators=[username_validator])


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ResetPasswordSerializer(PasswordConfirmationMixin, serializers.Serializer):
    password_field = 'new_password'

    token = serializers.CharField()
    new_password = serializers.CharField(write_only=True, min_length=8, max_length=100)
    confirm_password = serializers.CharField(write_only=True)

    def validate_new_password(self, value):
        return _run_password_validators(value)


class ChangePasswordSerializer(PasswordConfirmationMixin, serializers.Serializer):
    password_field = 'new_password'

    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=8, max_length=100)
    confirm_password = serializers.CharField(write_only=True)

    def validate_new_password(self, value):
        checks = [
            (r'[a-z]', 'one lowercase letter'),
            (r'[A-Z]', 'one uppercase letter'),
            (r'\d', 'one number'),
            (r'[^a-zA-Z\d]', 'one special character'),
        ]
        missing = [label for pattern, label in checks if not re.search(pattern, value)]
        if missing:
            raise serializers.ValidationError(
                'Password must contain at least ' + ', '.join(missing) + '.'
            )
        return _run_password_validators(value, self.context['request'].user)
