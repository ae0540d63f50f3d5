from django.apps import AppConfig


class IndexationConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'indexation'
    verbose_name = "Indexation des loyers"
