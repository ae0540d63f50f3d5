"""
Exceptions personnalisées pour l'indexation des loyers.
"""


class IndexationError(Exception):
    """Exception de base du moteur d'indexation."""

    def __init__(self, message, bail_id=None):
        self.message = message
        self.bail_id = bail_id

        if bail_id is not None:
            message = f"{message} (Bail: {bail_id})"

        super().__init__(message)


# --- Introuvables ---

class IntrouvableError(IndexationError):
    """Élément absent (indice, bail ou historique)."""


class IndiceIntrouvableError(IntrouvableError):
    """Exception levée quand aucun indice n'existe pour un trimestre donné."""

    def __init__(self, trimestre, bail_id=None):
        self.trimestre = trimestre
        super().__init__(f"Aucun indice IRL défini pour {trimestre}.", bail_id)


class BailIntrouvableError(IntrouvableError):
    def __init__(self, bail_id):
        super().__init__("Bail introuvable.", bail_id)


class HistoriqueIntrouvableError(IntrouvableError):
    def __init__(self, bail_id):
        super().__init__("Aucun historique d'indexation pour ce bail.", bail_id)


# --- Conflits ---

class ConflitError(IndexationError):
    """Conflit avec l'état actuel des données."""


class IndiceDejaExistantError(ConflitError):
    """Exception levée quand un indice existe déjà pour le trimestre."""

    def __init__(self, trimestre):
        self.trimestre = trimestre
        super().__init__(f"Un indice IRL existe déjà pour {trimestre}.")


class ModificationConcurrenteError(ConflitError):
    """Le bail a été modifié depuis le calcul de l'indexation."""

    def __init__(self, bail_id, raison):
        self.raison = raison
        super().__init__(
            f"Indexation refusée : {raison}. Veuillez relancer le calcul avant de réessayer.",
            bail_id,
        )


# --- Données ---

class DonneeInvalideError(IndexationError):
    """Valeur hors limites (année, trimestre, montant)."""


class IndiceInvalideError(IndexationError):
    """Indice nul ou négatif passé au calculateur."""

    def __init__(self, valeur, bail_id=None):
        self.valeur = valeur
        super().__init__(f"Indice invalide : {valeur}. Un indice doit être strictement positif.", bail_id)


class ReferenceManquanteError(IndexationError):
    """L'indice de référence enregistré sur le bail n'existe pas."""

    def __init__(self, trimestre, bail_id=None):
        self.trimestre = trimestre
        super().__init__(
            f"Indice de référence {trimestre} introuvable. Veuillez le saisir dans l'admin.",
            bail_id,
        )


class IndiceIndisponibleError(IndexationError):
    """Aucun indice n'est enregistré."""

    def __init__(self, bail_id=None):
        super().__init__("Aucun indice IRL disponible dans la base de données.", bail_id)
