from django.apps import AppConfig


class BrokerageCoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "brokerage_core"
    verbose_name = "Agency brokerage"

    # ensure receivers are registered
    def ready(self):
        import brokerage_core.signals  # noqa: F401
