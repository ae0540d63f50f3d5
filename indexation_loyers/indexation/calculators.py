"""
Calculateur de révision de loyer par indexation IRL.
"""
from decimal import Decimal, ROUND_HALF_UP
from dataclasses import dataclass
import logging

from .exceptions import DonneeInvalideError, IndiceInvalideError

logger = logging.getLogger(__name__)

CENTIMES = Decimal('0.01')


@dataclass(frozen=True)
class ResultatCalcul:
    nouveau_loyer: Decimal
    pourcentage_augmentation: Decimal


def arrondir(montant):
    """Arrondi commercial (demi supérieur) à 2 décimales."""
    return Decimal(montant).quantize(CENTIMES, rounding=ROUND_HALF_UP)


class IndexationCalculator:
    """Classe utilitaire pour le calcul des révisions de loyer."""

    @staticmethod
    def calculer(ancien_indice, nouvel_indice, loyer_actuel):
        """
        Calcule le nouveau loyer après révision IRL.

        nouveau_loyer = arrondi(loyer_actuel * nouvel_indice / ancien_indice)
        pourcentage = arrondi((nouveau_loyer - loyer_actuel) / loyer_actuel * 100)

        Le ratio intermédiaire n'est pas arrondi ; seul le résultat final l'est.

        Args:
            ancien_indice: Indice de référence du bail (dénominateur)
            nouvel_indice: Indice applicable à la date anniversaire
            loyer_actuel: Loyer hors charges actuel

        Returns:
            ResultatCalcul
        """
        ancien_indice = Decimal(str(ancien_indice))
        nouvel_indice = Decimal(str(nouvel_indice))
        loyer_actuel = Decimal(str(loyer_actuel))

        if ancien_indice <= 0:
            raise IndiceInvalideError(ancien_indice)
        if nouvel_indice <= 0:
            raise IndiceInvalideError(nouvel_indice)
        if loyer_actuel <= 0:
            raise DonneeInvalideError(f"Loyer invalide : {loyer_actuel}. Le loyer doit être strictement positif.")

        nouveau_loyer = arrondir(loyer_actuel * nouvel_indice / ancien_indice)
        pourcentage = arrondir((nouveau_loyer - loyer_actuel) / loyer_actuel * 100)

        logger.debug(f"Révision IRL : {loyer_actuel}€ x {nouvel_indice}/{ancien_indice} -> {nouveau_loyer}€ ({pourcentage:+}%)")

        return ResultatCalcul(nouveau_loyer=nouveau_loyer, pourcentage_augmentation=pourcentage)
