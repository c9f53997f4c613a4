import structlog
from django.apps import AppConfig


class CommonConfig(AppConfig):
    """Configuration for the common app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "common"

    def ready(self) -> None:
        """Log once Django is fully loaded."""
        from django.conf import settings

        logger = structlog.get_logger(__name__)
        logger.debug("common_app_ready", observability=settings.ENABLE_OBSERVABILITY)
