# task_manager/accounts/backends.py
from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

User = get_user_model()


class EmailOrUsernameBackend(ModelBackend):
    """Lets people sign in with either their email or their username."""

    def authenticate(self, request, identifier=None, password=None, **kwargs):
        identifier = identifier or kwargs.get(User.USERNAME_FIELD) or kwargs.get('username')
        if not identifier or password is None:
            return None

        user = User.objects.get_by_identifier(identifier.strip())
        if user is None:
            # run the hasher anyway so timing doesn't reveal unknown accounts
            User().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
