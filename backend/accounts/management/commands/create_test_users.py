from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password
from accounts.models import CustomUser

class Command(BaseCommand):
    help = 'Create test users for each ledger role'

    def handle(self, *args, **options):
        users_data = [
            {'username': 'staff_user', 'password': 'staff_password', 'role': 'staff'},
            {'username': 'admin_user', 'password': 'admin_password', 'role': 'admin'},
            {'username': 'super_admin_user', 'password': 'super_admin_password', 'role': 'super_admin'},
        ]

        for user_data in users_data:
            if CustomUser.objects.filter(username=user_data['username']).exists():
                self.stdout.write(
                    self.style.WARNING(f"User {user_data['username']} already exists")
                )
                continue

            user = CustomUser.objects.create(
                username=user_data['username'],
                password=make_password(user_data['password']),
                role=user_data['role']
            )
            self.stdout.write(
                self.style.SUCCESS(f"Created {user_data['role']} user: {user.username}")
            )
