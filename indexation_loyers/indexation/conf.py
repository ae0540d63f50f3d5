from django.conf import settings

DEFAUTS = {
    'ANNEE_MIN': 2000,
    'ANNEE_MAX': 2100,
    'FENETRE_JOURS': 60,
}


def get_config():
    """Paramètres du moteur d'indexation (settings.INDEXATION, complétés par les valeurs par défaut)."""
    config = dict(DEFAUTS)
    config.update(getattr(settings, 'INDEXATION', {}))
    return config
