from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class ChatConfig(AppConfig):
    name = "proserv.chat"
    verbose_name = _("Chat")

    def ready(self):
        import proserv.chat.sockets  # noqa: F401, PLC0415
