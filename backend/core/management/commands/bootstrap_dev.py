# backend/core/management/commands/bootstrap_dev.py
import os
from django.core.management.base import BaseCommand
from django.contrib.auth import get_user_model

from core.config import DEFAULTS
from core.models import SystemSetting


class Command(BaseCommand):
    help = "Idempotently ensure a dev superuser and the default system settings exist."

    def handle(self, *args, **opts):
        User = get_user_model()
        username = os.getenv("DEV_ADMIN_USER", "admin")
        email = os.getenv("DEV_ADMIN_EMAIL", "admin@example.com")
        password = os.getenv("DEV_ADMIN_PASS", "ChangeMe123!")

        user, created = User.objects.get_or_create(
            username=username,
            defaults={"email": email, "is_staff": True, "is_superuser": True},
        )
        if created:
            user.set_password(password)
            user.save()
            self.stdout.write(self.style.SUCCESS(f"Created superuser '{username}'"))
        else:
            self.stdout.write(f"Superuser '{username}' already exists")

        for key, value in DEFAULTS.items():
            _, created = SystemSetting.objects.get_or_create(
                setting_key=key,
                defaults={"setting_value": str(value)},
            )
            if created:
                self.stdout.write(self.style.SUCCESS(f"Seeded setting {key}={value}"))
