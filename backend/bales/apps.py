from django.apps import AppConfig


class BalesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'backend.bales'
