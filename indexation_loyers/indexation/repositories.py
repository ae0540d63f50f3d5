"""
Accès aux données de l'indexation : indices IRL, baux et historique.

Les services ne manipulent jamais l'ORM directement ; ils reçoivent ces
dépôts en paramètre.
"""
from decimal import Decimal, InvalidOperation
import logging

from django.db import IntegrityError, transaction

from .conf import get_config
from .exceptions import (
    BailIntrouvableError, ConflitError, DonneeInvalideError, IndiceDejaExistantError,
    IndiceIndisponibleError, IndiceIntrouvableError, IntrouvableError,
)
from .models import Bail, HistoriqueIndexation, IndiceReference
from .trimestres import Trimestre

logger = logging.getLogger(__name__)


class IndiceRepository:
    """Indices IRL publiés, un seul par (année, trimestre)."""

    def trouver(self, annee, trimestre):
        """Retourne l'indice du trimestre, ou None s'il n'est pas encore publié."""
        return IndiceReference.objects.filter(annee=annee, trimestre=trimestre).first()

    def get(self, annee, trimestre):
        indice = self.trouver(annee, trimestre)
        if indice is None:
            logger.warning(f"Aucun indice IRL trouvé pour T{trimestre} {annee}")
            raise IndiceIntrouvableError(Trimestre(annee, trimestre))
        return indice

    def valider(self, annee, trimestre, valeur):
        """
        Contrôle une saisie d'indice.

        Returns:
            tuple: (Trimestre, valeur en Decimal)

        Raises:
            DonneeInvalideError: année hors bornes, trimestre ou valeur invalide
        """
        config = get_config()
        if not isinstance(annee, int) or not config['ANNEE_MIN'] <= annee <= config['ANNEE_MAX']:
            raise DonneeInvalideError(
                f"Année invalide : {annee}. Elle doit être comprise entre {config['ANNEE_MIN']} et {config['ANNEE_MAX']}."
            )
        periode = Trimestre(annee, trimestre)

        try:
            valeur = Decimal(str(valeur))
        except InvalidOperation:
            raise DonneeInvalideError(f"Valeur d'indice invalide : {valeur}.")
        if not valeur.is_finite() or valeur <= 0:
            raise DonneeInvalideError(f"Valeur d'indice invalide : {valeur}. Elle doit être strictement positive.")
        return periode, valeur

    def ajouter(self, annee, trimestre, valeur):
        """
        Enregistre un nouvel indice IRL.

        L'unicité est garantie par la contrainte de la base : deux saisies
        simultanées du même trimestre aboutissent à une seule ligne et à une
        IndiceDejaExistantError pour l'autre appel.
        """
        periode, valeur = self.valider(annee, trimestre, valeur)

        logger.info(f"Ajout d'un nouvel IRL : {periode} = {valeur}")
        try:
            with transaction.atomic():
                indice = IndiceReference.objects.create(annee=annee, trimestre=trimestre, valeur=valeur)
        except IntegrityError:
            logger.warning(f"IRL {periode} déjà existant, saisie refusée")
            raise IndiceDejaExistantError(periode)

        logger.info(f"IRL {periode} créé avec succès")
        return indice

    def supprimer(self, indice_id):
        """Supprime un indice tant qu'aucun bail ne l'utilise comme référence."""
        indice = IndiceReference.objects.filter(pk=indice_id).first()
        if indice is None:
            raise IntrouvableError(f"Indice IRL {indice_id} introuvable.")

        nb_baux = self.nb_baux_references(indice)
        if nb_baux:
            raise ConflitError(f"L'indice {indice.libelle} est la référence de {nb_baux} bail(s) et ne peut pas être supprimé.")

        indice.delete()
        logger.info(f"IRL {indice.libelle} ({indice_id}) supprimé avec succès")

    def nb_baux_references(self, indice):
        """Nombre de baux qui utilisent le trimestre de l'indice comme référence."""
        return Bail.objects.filter(annee_reference=indice.annee, trimestre_reference=indice.trimestre).count()

    def dernier(self):
        """Indice le plus récent (année puis trimestre les plus élevés)."""
        indice = IndiceReference.objects.order_by('-annee', '-trimestre').first()
        if indice is None:
            logger.warning("Aucun IRL disponible dans la base de données")
            raise IndiceIndisponibleError()
        return indice

    def lister(self):
        return list(IndiceReference.objects.order_by('-annee', '-trimestre'))


class BailRepository:
    """Baux soumis à l'indexation."""

    def get(self, bail_id):
        bail = Bail.objects.filter(pk=bail_id).first()
        if bail is None:
            raise BailIntrouvableError(bail_id)
        return bail

    def lister_indexables(self, proprietaire_id=None):
        """Baux actifs dont l'indexation est activée, éventuellement pour un seul propriétaire."""
        baux = Bail.objects.filter(statut='ACTIF', indexation_active=True).select_related('proprietaire')
        if proprietaire_id is not None:
            baux = baux.filter(proprietaire_id=proprietaire_id)
        return list(baux.order_by('pk'))

    def appliquer_revision(self, bail_id, date_derniere_indexation, ancien_loyer, ancienne_reference,
                           nouveau_loyer, nouvelle_reference, date_indexation):
        """
        Met à jour le bail seulement s'il est inchangé depuis le calcul
        (date de dernière indexation, loyer et indice de référence).

        Returns:
            int: Nombre de baux mis à jour (0 si le bail a changé entre-temps)
        """
        baux = Bail.objects.filter(
            pk=bail_id,
            statut='ACTIF',
            indexation_active=True,
            loyer_hc=ancien_loyer,
            annee_reference=ancienne_reference.annee,
            trimestre_reference=ancienne_reference.trimestre,
        )
        if date_derniere_indexation is None:
            baux = baux.filter(date_derniere_indexation__isnull=True)
        else:
            baux = baux.filter(date_derniere_indexation=date_derniere_indexation)
        return baux.update(
            loyer_hc=nouveau_loyer,
            date_derniere_indexation=date_indexation,
            annee_reference=nouvelle_reference.annee,
            trimestre_reference=nouvelle_reference.trimestre,
        )


class HistoriqueRepository:
    """Historique des indexations appliquées (ajout seul)."""

    def ajouter(self, **champs):
        return HistoriqueIndexation.objects.create(**champs)

    def lister(self, bail_id=None, proprietaire_id=None):
        historique = HistoriqueIndexation.objects.select_related('bail')
        if bail_id is not None:
            historique = historique.filter(bail_id=bail_id)
        if proprietaire_id is not None:
            historique = historique.filter(bail__proprietaire_id=proprietaire_id)
        return list(historique.order_by('-date_application', '-id'))

    def dernier_pour_bail(self, bail_id):
        return HistoriqueIndexation.objects.filter(bail_id=bail_id).order_by('-date_application', '-id').first()

    def marquer_lettre_generee(self, historique_id):
        """Passe `lettre_generee` à True ; sans effet si c'est déjà le cas."""
        return HistoriqueIndexation.objects.filter(pk=historique_id, lettre_generee=False).update(lettre_generee=True)
