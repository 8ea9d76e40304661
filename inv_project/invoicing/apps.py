from django.apps import AppConfig


class InvoicingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "invoicing"

    # ensure receivers are registered
    def ready(self):
        import invoicing.signals  # noqa: F401
