"""
Calendrier trimestriel pour l'indexation des loyers.

Conversion date <-> (trimestre, année), dates anniversaires des baux et
navigation entre trimestres. Les libellés ("T1 2025") servent uniquement à
l'affichage.
"""
from dataclasses import dataclass
from datetime import date

from dateutil.relativedelta import relativedelta

from .exceptions import DonneeInvalideError

PERIODES_PUBLICATION = {
    1: 'mi-avril',
    2: 'mi-juillet',
    3: 'mi-octobre',
    4: 'mi-janvier (année suivante)',
}


def _verifier_trimestre(trimestre):
    if trimestre not in (1, 2, 3, 4):
        raise DonneeInvalideError(f"Trimestre invalide : {trimestre}. Valeurs possibles : 1 à 4.")


@dataclass(frozen=True, order=True)
class Trimestre:
    """Trimestre civil. L'ordre de tri est chronologique (année puis trimestre)."""

    annee: int
    trimestre: int

    def __post_init__(self):
        _verifier_trimestre(self.trimestre)

    @classmethod
    def depuis_date(cls, d):
        return cls(annee_de_date(d), trimestre_de_date(d))

    @property
    def libelle(self):
        return f"T{self.trimestre} {self.annee}"

    def suivant(self):
        trimestre, annee = trimestre_suivant(self.trimestre, self.annee)
        return Trimestre(annee, trimestre)

    def precedent(self):
        trimestre, annee = trimestre_precedent(self.trimestre, self.annee)
        return Trimestre(annee, trimestre)

    def __str__(self):
        return self.libelle


def trimestre_de_date(d):
    """Mois 1-3 -> 1, 4-6 -> 2, 7-9 -> 3, 10-12 -> 4."""
    return (d.month - 1) // 3 + 1


def annee_de_date(d):
    return d.year


def prochain_anniversaire(date_debut, aujourd_hui):
    """
    Calcule la prochaine date anniversaire d'un bail.

    Même jour/mois que la date d'entrée, dans l'année en cours si cette date
    n'est pas encore passée (aujourd'hui inclus), sinon l'année suivante.
    Un bail commencé un 29 février a son anniversaire le 28 février les
    années non bissextiles.

    Args:
        date_debut: Date d'entrée du bail
        aujourd_hui: Date de référence

    Returns:
        date: La prochaine date anniversaire
    """
    anniversaire = date_debut + relativedelta(year=aujourd_hui.year)
    if anniversaire < aujourd_hui:
        anniversaire = date_debut + relativedelta(year=aujourd_hui.year + 1)
    return anniversaire


def jours_jusqu_a(cible, aujourd_hui):
    """Nombre de jours jusqu'à la date cible (négatif si passée)."""
    return (cible - aujourd_hui).days


def trimestre_suivant(trimestre, annee):
    """Retourne (trimestre, annee) du trimestre suivant."""
    _verifier_trimestre(trimestre)
    if trimestre == 4:
        return 1, annee + 1
    return trimestre + 1, annee


def trimestre_precedent(trimestre, annee):
    """Retourne (trimestre, annee) du trimestre précédent."""
    _verifier_trimestre(trimestre)
    if trimestre == 1:
        return 4, annee - 1
    return trimestre - 1, annee


def periode_publication(trimestre):
    """Période de publication habituelle de l'IRL d'un trimestre (informatif)."""
    _verifier_trimestre(trimestre)
    return PERIODES_PUBLICATION[trimestre]


def trimestre_courant(aujourd_hui=None):
    return Trimestre.depuis_date(aujourd_hui or date.today())


def trimestres_disponibles(aujourd_hui=None, nombre=8):
    """Les `nombre` derniers trimestres, du plus récent au plus ancien (T4 de l'année en cours d'abord)."""
    annee = (aujourd_hui or date.today()).year
    courant = Trimestre(annee, 4)
    trimestres = []
    for _ in range(nombre):
        trimestres.append(courant)
        courant = courant.precedent()
    return trimestres


def trimestre_reference_initial(date_debut):
    """Trimestre de référence par défaut d'un bail : celui de sa date d'entrée."""
    return Trimestre.depuis_date(date_debut)
