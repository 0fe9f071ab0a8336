# task_manager/accounts/models.py
import hashlib
import uuid

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.validators import RegexValidator
from django.db import models
from django.utils.timezone import now


username_validator = RegexValidator(
    r'^[a-zA-Z0-9_\-]+$',
    'Username can only contain letters, numbers, hyphens, and underscores',
)


class CustomUserManager(BaseUserManager):
    def create_user(self, email, username, password=None, **extra_fields):
        if not email:
            raise ValueError('The Email field must be set')
        if not username:
            raise ValueError('The Username field must be set')
        email = self.normalize_email(email)
        user = self.model(email=email, username=username, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, username, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        return self.create_user(email, username, password, **extra_fields)

    def get_by_identifier(self, identifier):
        """Match on email or username, the way login and invitations look people up."""
        return self.filter(models.Q(email__iexact=identifier) | models.Q(username=identifier)).first()


def hash_reset_token(token):
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


class CustomUser(AbstractUser):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(max_length=254, unique=True)
    username = models.CharField(max_length=50, unique=True, validators=[username_validator])

    # only the SHA-256 digest of the emailed token is stored
    reset_password_token = models.CharField(max_length=64, blank=True, null=True, db_index=True)
    reset_password_expires = models.DateTimeField(blank=True, null=True)

    REQUIRED_FIELDS = ['username']
    USERNAME_FIELD = 'email'

    objects = CustomUserManager()

    class Meta:
        ordering = ['username']

    def __str__(self):
        return self.username

    def set_reset_token(self, token, expires_at):
        self.reset_password_token = hash_reset_token(token)
        self.reset_password_expires = expires_at

    def clear_reset_token(self):
        self.reset_password_token = None
        self.reset_password_expires = None

    def reset_token_expired(self):
        return self.reset_password_expires is None or now() >= self.reset_password_expires
