"""
Management command to seed demo users, doctors and patients.

Idempotent: existing accounts get their password, role and active flag
reset, profiles are created or updated in place.
"""
from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand
from django.db import transaction

from scheduling.models import Doctor, Patient, Role, User

ADMINS = [
    ("admin1", "Clinic Admin"),
]

DOCTORS = [
    ("dr_smith", "Dr. Anna Smith", "General Practice", ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]),
    ("dr_jones", "Dr. Ben Jones", "Cardiology", []),
    ("dr_lee", "Dr. Mei Lee", "Dermatology", ["13:00", "13:30", "14:00", "14:30", "15:00"]),
]

PATIENTS = [
    ("patient1", "John Doe", "555-0101"),
    ("patient2", "Jane Roe", "555-0102"),
    ("patient3", "Sam Poe", "555-0103"),
]


class Command(BaseCommand):
    help = "Create demo accounts with doctor and patient profiles (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="123456", help="Password set on every demo account.")

    @transaction.atomic
    def handle(self, *args, **opts):
        password = make_password(opts["password"])

        for username, name in ADMINS:
            self._user(username, name, Role.ADMIN, password, is_staff=True)

        for username, name, specialty, times in DOCTORS:
            user = self._user(username, name, Role.DOCTOR, password)
            Doctor.objects.update_or_create(
                user=user,
                defaults={"name": name, "specialty": specialty, "available_times": times, "active": True},
            )

        for username, name, phone in PATIENTS:
            user = self._user(username, name, Role.PATIENT, password)
            Patient.objects.update_or_create(
                user=user,
                defaults={"name": name, "phone": phone, "status": Patient.STATUS_ACTIVE},
            )

        self.stdout.write(self.style.SUCCESS(
            f"Seeded {len(ADMINS)} admins, {len(DOCTORS)} doctors, {len(PATIENTS)} patients."
        ))

    def _user(self, username, name, role, password, is_staff=False):
        user, created = User.objects.get_or_create(
            username=username,
            defaults={"role": role, "password": password, "first_name": name,
                      "is_active": True, "is_staff": is_staff},
        )
        if not created:
            user.password = password
            user.role = role
            user.is_active = True
            user.save(update_fields=["password", "role", "is_active"])
        self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        return user
