"""Django app configuration for django-filefield."""

from django.apps import AppConfig


class DjangoFileFieldConfig(AppConfig):
    """App configuration for django-filefield."""

    name = 'django_filefield'
    verbose_name = 'Django File Field'
    default_auto_field = 'django.db.models.BigAutoField'
