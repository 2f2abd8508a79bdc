from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend


class EmailBackend(ModelBackend):
    """
    Authenticate with email + password.

    Emails are matched case-insensitively; the default user model doesn't enforce
    unique emails, so every candidate is tried in id order.
    """

    def authenticate(self, request, email=None, password=None, **kwargs):
        email = (email or "").strip()
        if not email or password is None:
            return None
        User = get_user_model()
        candidates = list(User.objects.filter(email__iexact=email).order_by("id"))
        if not candidates:
            # Keep timing close to the "user exists" path.
            User().set_password(password)
            return None
        for user in candidates:
            if user.check_password(password) and self.user_can_authenticate(user):
                return user
        return None
