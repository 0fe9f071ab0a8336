# task_manager/accounts/services.py
import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from django.core.mail import send_mail
from django.db import transaction
from django.utils.timezone import now
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.tokens import AccessToken

from common.exceptions import Conflict, InvalidResetToken

from .models import hash_reset_token

logger = logging.getLogger(__name__)

User = get_user_model()


def issue_token(user):
    token = AccessToken.for_user(user)
    token['username'] = user.username
    return str(token)


def ensure_unique_identity(email=None, username=None, exclude_id=None):
    users = User.objects.all()
    if exclude_id is not None:
        users = users.exclude(pk=exclude_id)
    if email is not None and users.filter(email__iexact=email).exists():
        raise Conflict("Email already registered.")
    if username is not None and users.filter(username=username).exists():
        raise Conflict("Username already taken.")


def register_user(email, username, password):
    with transaction.atomic():
        ensure_unique_identity(email=email, username=username)
        user = User.objects.create_user(email=email, username=username, password=password)
    logger.info("Registered user %s", user.pk)
    return user


def login(request, identifier, password):
    user = authenticate(request, identifier=identifier, password=password)
    if user is None:
        raise AuthenticationFailed("Invalid credentials.")
    return user, issue_token(user)


def request_password_reset(email):
    """
    Issues a one-hour reset token when the email is known. Callers always get
    the same answer so the endpoint can't be used to probe for accounts.
    """
    user = User.objects.filter(email__iexact=email).first()
    if user is None:
        logger.info("Password reset requested for unknown email")
        return

    token = secrets.token_urlsafe(32)
    user.set_reset_token(token, now() + timedelta(minutes=settings.PASSWORD_RESET_TIMEOUT_MINUTES))
    user.save(update_fields=['reset_password_token', 'reset_password_expires'])

    reset_link = f"{settings.FRONTEND_BASE_URL.rstrip('/')}/reset-password?token={token}"
    try:
        send_mail(
            'Password Reset Request',
            f'Use the following link to reset your password: {reset_link}\n\n'
            f'The link expires in {settings.PASSWORD_RESET_TIMEOUT_MINUTES} minutes.',
            settings.DEFAULT_FROM_EMAIL,
            [user.email],
        )
    except Exception:
        logger.warning("Could not send password reset email to user %s", user.pk, exc_info=True)


def reset_password(token, new_password):
    with transaction.atomic():
        user = User.objects.select_for_update().filter(
            reset_password_token=hash_reset_token(token)
        ).first()
        if user is None or user.reset_token_expired():
            raise InvalidResetToken()
        user.set_password(new_password)
        user.clear_reset_token()
        user.save(update_fields=['password', 'reset_password_token', 'reset_password_expires'])
    logger.info("Password reset for user %s", user.pk)


def change_password(user, current_password, new_password):
    if not user.check_password(current_password):
        raise AuthenticationFailed("Current password is incorrect.")
    user.set_password(new_password)
    user.save(update_fields=['password'])
    logger.info("Password changed for user %s", user.pk)


def update_profile(user, **changes):
    with transaction.atomic():
        ensure_unique_identity(
            email=changes.get('email'), username=changes.get('username'), exclude_id=user.pk
        )
        for attr, value in changes.items():
            setattr(user, attr, value)
        user.save(update_fields=list(changes) or None)
    return user
