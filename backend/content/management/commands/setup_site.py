"""
Management command to prepare a fresh database.

Creates the default categories and, when SUPER_ADMIN_* is configured,
the first super admin.

Usage: python manage.py setup_site [--skip-admin]
"""

import os

from django.contrib.auth.models import User
from django.core.management.base import BaseCommand, CommandError

from content.models import Category, Profile

DEFAULT_CATEGORIES = [
    {'name': 'Short Stories', 'slug': 'short-stories', 'description': 'Creative fictional narratives', 'order': 1},
    {'name': 'Personal Essays', 'slug': 'personal-essays', 'description': 'Personal reflections and experiences', 'order': 2},
    {'name': 'Think Pieces', 'slug': 'think-pieces', 'description': 'Analytical and opinion pieces', 'order': 3},
    {'name': 'Articles', 'slug': 'articles', 'description': 'Informative and journalistic content', 'order': 4},
    {'name': 'Non-Fiction', 'slug': 'non-fiction', 'description': 'Factual and educational content', 'order': 5},
]


class Command(BaseCommand):
    help = 'Create default categories and the super admin account'

    def add_arguments(self, parser):
        parser.add_argument(
            '--skip-admin',
            action='store_true',
            help='Only create categories'
        )

    def handle(self, *args, **options):
        if not options['skip_admin']:
            self._ensure_super_admin()

        self.stdout.write('Creating categories...')
        created = 0
        for data in DEFAULT_CATEGORIES:
            _, was_created = Category.objects.get_or_create(
                name=data['name'],
                defaults=data
            )
            if was_created:
                created += 1
                self.stdout.write(f'  Category "{data["name"]}" created')
            else:
                self.stdout.write(f'  Category "{data["name"]}" already exists')

        self.stdout.write(self.style.SUCCESS(
            f'Setup completed: {created} new categories'
        ))

    def _ensure_super_admin(self):
        email = os.getenv('SUPER_ADMIN_EMAIL')
        password = os.getenv('SUPER_ADMIN_PASSWORD')
        name = os.getenv('SUPER_ADMIN_NAME', 'Super Admin')

        if not email or not password:
            raise CommandError('SUPER_ADMIN_EMAIL and SUPER_ADMIN_PASSWORD must be set (or pass --skip-admin)')

        if User.objects.filter(email=email).exists():
            self.stdout.write('Super admin already exists')
            return

        first_name, _, last_name = name.partition(' ')
        user = User.objects.create_user(
            username=email,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            is_staff=True,
        )
        Profile.objects.create(user=user, role=Profile.Role.SUPER_ADMIN)
        self.stdout.write(self.style.SUCCESS(f'Super admin {email} created'))
