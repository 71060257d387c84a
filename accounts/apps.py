"""Accounts app configuration."""

from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """Django app config for users, states and addresses."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'accounts'
