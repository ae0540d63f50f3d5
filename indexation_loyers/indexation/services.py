"""
Services d'indexation des loyers (IRL).

- IndiceResolver: indice applicable à une date, avec estimation si le
  trimestre n'est pas encore publié
- EligibiliteScanner: baux dont la date anniversaire approche
- IndexationApplier: application d'une révision et historisation
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
import logging

from django.db import transaction
from django.utils import timezone

from .calculators import IndexationCalculator
from .conf import get_config
from .exceptions import (
    DonneeInvalideError, HistoriqueIntrouvableError, IndexationError, IndiceIndisponibleError,
    IndiceIntrouvableError, IndiceInvalideError, ModificationConcurrenteError, ReferenceManquanteError,
)
from .models import IndiceReference, Bail
from .repositories import BailRepository, HistoriqueRepository, IndiceRepository
from .trimestres import Trimestre, jours_jusqu_a, prochain_anniversaire, trimestre_reference_initial

logger = logging.getLogger(__name__)

REFERENCE_MANQUANTE = 'REFERENCE_MANQUANTE'
INDISPONIBLE = 'INDISPONIBLE'
INDICE_INVALIDE = 'INDICE_INVALIDE'


# ============================================================================
# RÉSULTATS
# ============================================================================

@dataclass(frozen=True)
class IndiceResolu:
    indice: IndiceReference
    trimestre: Trimestre
    estime: bool = False
    estime_depuis: str = ''


@dataclass(frozen=True)
class CalculIndexation:
    """Révision calculée pour un bail, prête à être appliquée."""
    bail_id: int
    ancien_loyer: Decimal
    nouveau_loyer: Decimal
    ancien_indice: Decimal
    ancien_trimestre: Trimestre
    nouvel_indice: Decimal
    nouveau_trimestre: Trimestre
    pourcentage_augmentation: Decimal
    date_effet: date
    # État du bail au moment du calcul, revérifié à l'application
    date_derniere_indexation: date | None = None
    indice_estime: bool = False
    estime_depuis: str = ''

    @property
    def ancien_indice_libelle(self):
        return self.ancien_trimestre.libelle

    @property
    def nouvel_indice_libelle(self):
        return self.nouveau_trimestre.libelle

    def donnees_lettre(self):
        """Données transmises au générateur de courrier d'indexation."""
        return {
            'ancien_loyer': self.ancien_loyer,
            'nouveau_loyer': self.nouveau_loyer,
            'ancien_indice_libelle': self.ancien_indice_libelle,
            'nouvel_indice_libelle': self.nouvel_indice_libelle,
            'pourcentage_augmentation': self.pourcentage_augmentation,
            'date_effet': self.date_effet,
            'indice_estime': self.indice_estime,
            'estime_depuis': self.estime_depuis,
        }


@dataclass(frozen=True)
class Avertissement:
    bail_id: int
    code: str
    message: str


@dataclass(frozen=True)
class BailEligible:
    bail: Bail
    date_anniversaire: date
    jours_restants: int
    calcul: CalculIndexation


@dataclass(frozen=True)
class ResultatScan:
    eligibles: list = field(default_factory=list)
    avertissements: list = field(default_factory=list)


@dataclass(frozen=True)
class SituationBail:
    bail: Bail
    date_anniversaire: date
    jours_restants: int
    reference: Trimestre
    calcul: CalculIndexation | None = None


# ============================================================================
# RÉSOLUTION DE L'INDICE
# ============================================================================

class IndiceResolver:
    """Détermine l'indice IRL applicable à une date."""

    def __init__(self, indices=None):
        self.indices = indices or IndiceRepository()

    def resoudre(self, date_cible):
        """
        Récupère l'IRL du trimestre de la date cible.

        Si cet indice n'est pas encore publié, le dernier IRL disponible est
        utilisé et le résultat est marqué comme estimé. Aucune limite
        d'ancienneté n'est appliquée à l'indice emprunté.

        Raises:
            IndiceIndisponibleError: aucun indice enregistré
        """
        trimestre = Trimestre.depuis_date(date_cible)
        logger.debug(f"Recherche IRL pour date {date_cible} -> {trimestre}")

        indice = self.indices.trouver(trimestre.annee, trimestre.trimestre)
        if indice is not None:
            return IndiceResolu(indice=indice, trimestre=trimestre)

        dernier = self.indices.dernier()
        logger.info(f"IRL {trimestre} non publié, estimation avec le dernier IRL disponible ({dernier.libelle})")
        return IndiceResolu(indice=dernier, trimestre=trimestre, estime=True, estime_depuis=dernier.libelle)


# ============================================================================
# BAUX À INDEXER
# ============================================================================

class EligibiliteScanner:
    """
    Recherche les baux à indexer.

    Un bail est éligible si :
    - il est actif et son indexation est activée
    - son indice de référence (année, trimestre) est renseigné
    - sa date anniversaire tombe dans les N prochains jours (aujourd'hui inclus)
    - il n'a pas déjà été indexé pour cet anniversaire

    Lecture seule : le résultat est une photographie que l'appelant doit
    revalider au moment d'appliquer (voir IndexationApplier).
    """

    def __init__(self, indices=None, resolver=None, calculator=IndexationCalculator):
        self.indices = indices or IndiceRepository()
        self.resolver = resolver or IndiceResolver(self.indices)
        self.calculator = calculator

    @staticmethod
    def est_dans_le_cycle(bail, date_anniversaire, jours_restants, fenetre_jours):
        """Vérifie la fenêtre et que l'anniversaire n'a pas déjà donné lieu à une révision."""
        if not 0 <= jours_restants <= fenetre_jours:
            return False
        # Pas de révision avant le premier anniversaire
        if date_anniversaire <= bail.date_debut:
            return False
        if bail.date_derniere_indexation is not None and bail.date_derniere_indexation >= date_anniversaire:
            return False
        # Une révision appliquée en avance a déjà porté la référence au trimestre de l'anniversaire
        return bail.reference < Trimestre.depuis_date(date_anniversaire)

    def calculer(self, bail, reference, date_anniversaire):
        """
        Calcule la révision d'un bail pour une date anniversaire.

        Raises:
            ReferenceManquanteError: l'indice de référence du bail n'existe pas
            IndiceIndisponibleError: aucun indice enregistré
            IndiceInvalideError / DonneeInvalideError: calcul impossible
        """
        try:
            ancien = self.indices.get(reference.annee, reference.trimestre)
        except IndiceIntrouvableError:
            raise ReferenceManquanteError(reference, bail.pk)

        try:
            resolu = self.resolver.resoudre(date_anniversaire)
        except IndiceIndisponibleError:
            raise IndiceIndisponibleError(bail.pk)

        resultat = self.calculator.calculer(ancien.valeur, resolu.indice.valeur, bail.loyer_hc)

        return CalculIndexation(
            bail_id=bail.pk,
            ancien_loyer=Decimal(str(bail.loyer_hc)),
            nouveau_loyer=resultat.nouveau_loyer,
            ancien_indice=ancien.valeur,
            ancien_trimestre=reference,
            nouvel_indice=resolu.indice.valeur,
            nouveau_trimestre=resolu.trimestre,
            pourcentage_augmentation=resultat.pourcentage_augmentation,
            date_effet=date_anniversaire,
            date_derniere_indexation=bail.date_derniere_indexation,
            indice_estime=resolu.estime,
            estime_depuis=resolu.estime_depuis,
        )

    def scanner(self, baux, fenetre_jours=None, aujourd_hui=None):
        """
        Récupère les baux à indexer parmi `baux`.

        Un bail en erreur (indice de référence manquant, aucun indice publié,
        calcul impossible) est écarté et signalé dans les avertissements sans
        interrompre le traitement des autres.

        Args:
            baux: Baux à examiner
            fenetre_jours: Nombre de jours d'avance (défaut: FENETRE_JOURS)
            aujourd_hui: Date de référence (défaut: aujourd'hui)

        Returns:
            ResultatScan: éligibles triés par jours restants puis id, et avertissements
        """
        if fenetre_jours is None:
            fenetre_jours = get_config()['FENETRE_JOURS']
        if fenetre_jours < 0:
            raise DonneeInvalideError(f"Fenêtre invalide : {fenetre_jours} jours.")
        aujourd_hui = aujourd_hui or timezone.now().date()

        logger.info(f"Recherche des baux à indexer dans les {fenetre_jours} prochains jours (au {aujourd_hui})")

        eligibles = []
        avertissements = []
        vus = set()

        for bail in baux:
            if bail.pk in vus:
                continue
            vus.add(bail.pk)

            if not bail.est_indexable or bail.reference is None:
                continue

            date_anniversaire = prochain_anniversaire(bail.date_debut, aujourd_hui)
            jours_restants = jours_jusqu_a(date_anniversaire, aujourd_hui)

            if not self.est_dans_le_cycle(bail, date_anniversaire, jours_restants, fenetre_jours):
                continue

            try:
                calcul = self.calculer(bail, bail.reference, date_anniversaire)
            except ReferenceManquanteError as e:
                avertissements.append(Avertissement(bail.pk, REFERENCE_MANQUANTE, str(e)))
                continue
            except IndiceIndisponibleError as e:
                avertissements.append(Avertissement(bail.pk, INDISPONIBLE, str(e)))
                continue
            except (IndiceInvalideError, DonneeInvalideError) as e:
                avertissements.append(Avertissement(bail.pk, INDICE_INVALIDE, str(e)))
                continue

            eligibles.append(BailEligible(bail, date_anniversaire, jours_restants, calcul))

        eligibles.sort(key=lambda e: (e.jours_restants, e.bail.pk))

        for avertissement in avertissements:
            logger.warning(f"Bail {avertissement.bail_id} écarté ({avertissement.code}) : {avertissement.message}")
        logger.info(f"{len(eligibles)} bail(s) à indexer, {len(avertissements)} avertissement(s)")

        return ResultatScan(eligibles=eligibles, avertissements=avertissements)

    def apercu(self, baux, aujourd_hui=None):
        """
        Situation de tous les baux indexables, quelle que soit la date anniversaire.

        Le trimestre de référence non renseigné est déduit de la date d'entrée.
        Le calcul vaut None quand il ne peut pas être fait.
        """
        aujourd_hui = aujourd_hui or timezone.now().date()
        situations = []
        vus = set()

        for bail in baux:
            if bail.pk in vus or not bail.est_indexable:
                continue
            vus.add(bail.pk)

            date_anniversaire = prochain_anniversaire(bail.date_debut, aujourd_hui)
            reference = bail.reference or trimestre_reference_initial(bail.date_debut)

            try:
                calcul = self.calculer(bail, reference, date_anniversaire)
            except IndexationError as e:
                logger.warning(f"Calcul impossible pour le bail {bail.pk} : {e}")
                calcul = None

            situations.append(SituationBail(
                bail=bail,
                date_anniversaire=date_anniversaire,
                jours_restants=jours_jusqu_a(date_anniversaire, aujourd_hui),
                reference=reference,
                calcul=calcul,
            ))

        return sorted(situations, key=lambda s: (s.jours_restants, s.bail.pk))


# ============================================================================
# APPLICATION
# ============================================================================

class IndexationApplier:
    """Applique les révisions calculées et tient l'historique."""

    def __init__(self, baux=None, historique=None):
        self.baux = baux or BailRepository()
        self.historique = historique or HistoriqueRepository()

    def verifier_calcul(self, bail_id, calcul):
        """
        Refait le calcul à partir des indices et de l'ancien loyer transmis.

        Raises:
            DonneeInvalideError: nouveau loyer ou pourcentage incohérent
        """
        if calcul.bail_id != bail_id:
            raise DonneeInvalideError(f"Le calcul fourni concerne le bail {calcul.bail_id}.", bail_id)

        try:
            attendu = IndexationCalculator.calculer(calcul.ancien_indice, calcul.nouvel_indice, calcul.ancien_loyer)
        except IndexationError as e:
            raise DonneeInvalideError(e.message, bail_id)

        if calcul.nouveau_loyer != attendu.nouveau_loyer:
            raise DonneeInvalideError(
                f"Nouveau loyer incohérent : {calcul.nouveau_loyer} € transmis, {attendu.nouveau_loyer} € attendus.",
                bail_id,
            )
        if calcul.pourcentage_augmentation != attendu.pourcentage_augmentation:
            raise DonneeInvalideError(
                f"Pourcentage incohérent : {calcul.pourcentage_augmentation}% transmis, "
                f"{attendu.pourcentage_augmentation}% attendus.",
                bail_id,
            )

    def appliquer(self, bail_id, calcul, aujourd_hui=None):
        """
        Applique l'indexation à un bail.

        Le calcul est refait avant application. Le bail est relu et doit être
        inchangé depuis le calcul : même date de dernière indexation, même
        loyer et même indice de référence. La mise à jour est conditionnelle :
        si un autre appel a modifié le bail entre-temps, aucune ligne n'est
        modifiée et une ModificationConcurrenteError est levée. Mise à jour du
        bail et ajout à l'historique sont faits dans la même transaction.

        Returns:
            HistoriqueIndexation: L'entrée d'historique créée
        """
        aujourd_hui = aujourd_hui or timezone.now().date()

        self.verifier_calcul(bail_id, calcul)

        logger.info(f"Application de l'indexation pour le bail {bail_id}")

        with transaction.atomic():
            bail = self.baux.get(bail_id)

            if bail.statut != 'ACTIF':
                raise ModificationConcurrenteError(bail_id, "le bail n'est plus actif")
            if not bail.indexation_active:
                raise ModificationConcurrenteError(bail_id, "l'indexation est désactivée pour ce bail")
            if bail.date_derniere_indexation != calcul.date_derniere_indexation:
                raise ModificationConcurrenteError(bail_id, "une indexation a déjà été appliquée depuis le calcul")
            if bail.loyer_hc != calcul.ancien_loyer:
                raise ModificationConcurrenteError(bail_id, "le loyer a été modifié depuis le calcul")
            if bail.reference != calcul.ancien_trimestre:
                raise ModificationConcurrenteError(bail_id, "l'indice de référence a été modifié depuis le calcul")

            nb_maj = self.baux.appliquer_revision(
                bail_id,
                date_derniere_indexation=calcul.date_derniere_indexation,
                ancien_loyer=calcul.ancien_loyer,
                ancienne_reference=calcul.ancien_trimestre,
                nouveau_loyer=calcul.nouveau_loyer,
                nouvelle_reference=calcul.nouveau_trimestre,
                date_indexation=aujourd_hui,
            )
            if nb_maj != 1:
                raise ModificationConcurrenteError(bail_id, "le bail a été modifié pendant l'application")

            historique = self.historique.ajouter(
                bail_id=bail_id,
                ancien_loyer=calcul.ancien_loyer,
                nouveau_loyer=calcul.nouveau_loyer,
                ancien_indice_valeur=calcul.ancien_indice,
                ancien_indice_libelle=calcul.ancien_indice_libelle,
                nouvel_indice_valeur=calcul.nouvel_indice,
                nouvel_indice_libelle=calcul.nouvel_indice_libelle,
                indice_estime=calcul.indice_estime,
                estime_depuis=calcul.estime_depuis,
                pourcentage_augmentation=calcul.pourcentage_augmentation,
                date_application=aujourd_hui,
            )

        logger.info(f"Indexation appliquée avec succès. Nouveau loyer: {calcul.nouveau_loyer} € ({calcul.pourcentage_augmentation:+}%)")
        return historique

    def marquer_lettre_generee(self, bail_id):
        """Marque le courrier de la dernière indexation du bail comme généré."""
        logger.info(f"Marquage de la lettre comme générée pour le bail {bail_id}")

        historique = self.historique.dernier_pour_bail(bail_id)
        if historique is None:
            logger.warning(f"Aucun historique d'indexation trouvé pour le bail {bail_id}")
            raise HistoriqueIntrouvableError(bail_id)

        if self.historique.marquer_lettre_generee(historique.pk):
            historique.lettre_generee = True
        return historique

    def historique_indexations(self, bail_id=None, proprietaire_id=None):
        return self.historique.lister(bail_id=bail_id, proprietaire_id=proprietaire_id)
