from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    email = models.EmailField("Email", unique=True)
    email_verified = models.BooleanField("Email verified", default=False)

    def __str__(self):
        return self.email or self.username

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username
