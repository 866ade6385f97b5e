from django.apps import AppConfig


class BedsConfig(AppConfig):
    name = 'beds'
    verbose_name = 'Ward beds'
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self) -> None:
        # Connect the assignment-change receivers
        from . import signals  # noqa: F401
