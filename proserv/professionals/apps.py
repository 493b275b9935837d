from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class ProfessionalsConfig(AppConfig):
    name = "proserv.professionals"
    verbose_name = _("Professionals")
