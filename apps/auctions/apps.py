from django.apps import AppConfig


class AuctionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.auctions"

    def ready(self) -> None:
        from shared.application.message_bus import message_bus

        from .application.command_handlers import register_handlers
        from .application.event_handlers import register_event_handlers

        register_handlers(message_bus)
        register_event_handlers(message_bus)
