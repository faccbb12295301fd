from django.apps import AppConfig


class DriversAppConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'drivers_app'
    verbose_name = 'Drivers - Motoristas TVDE'
