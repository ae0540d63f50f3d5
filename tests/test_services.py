from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from indexation.exceptions import (
    BailIntrouvableError, DonneeInvalideError, HistoriqueIntrouvableError, IndiceIndisponibleError,
    ModificationConcurrenteError,
)
from indexation.models import Bail, HistoriqueIndexation, IndiceReference
from indexation.repositories import HistoriqueRepository
from indexation.services import (
    INDICE_INVALIDE, INDISPONIBLE, REFERENCE_MANQUANTE, EligibiliteScanner, IndexationApplier,
    IndiceResolu, IndiceResolver,
)
from indexation.trimestres import Trimestre

AUJOURD_HUI = date(2025, 2, 20)


@pytest.fixture
def indices_2025(creer_indice):
    creer_indice(2023, 1, '140.00')
    creer_indice(2025, 1, '145.00')


def scanner(baux, **kwargs):
    kwargs.setdefault('fenetre_jours', 60)
    kwargs.setdefault('aujourd_hui', AUJOURD_HUI)
    return EligibiliteScanner().scanner(baux, **kwargs)


@pytest.mark.django_db
class TestIndiceResolver:

    def test_indice_publie(self, indices_2025):
        resolu = IndiceResolver().resoudre(date(2025, 3, 15))

        assert resolu.estime is False
        assert resolu.indice.valeur == Decimal('145.00')
        assert resolu.trimestre == Trimestre(2025, 1)

    def test_estimation_avec_le_dernier_indice(self, creer_indice):
        creer_indice(2023, 1, '140.00')
        creer_indice(2024, 4, '144.20')

        resolu = IndiceResolver().resoudre(date(2025, 3, 15))

        assert resolu.estime is True
        assert resolu.estime_depuis == "T4 2024"
        assert resolu.indice.valeur == Decimal('144.20')
        assert resolu.trimestre == Trimestre(2025, 1)

    def test_aucun_indice(self, db):
        with pytest.raises(IndiceIndisponibleError):
            IndiceResolver().resoudre(date(2025, 3, 15))


@pytest.mark.django_db
class TestEligibiliteScanner:

    def test_bail_arrivant_a_echeance(self, creer_bail, indices_2025):
        bail = creer_bail()

        resultat = scanner([bail])

        assert resultat.avertissements == []
        assert len(resultat.eligibles) == 1
        eligible = resultat.eligibles[0]
        assert eligible.bail == bail
        assert eligible.date_anniversaire == date(2025, 3, 15)
        assert eligible.jours_restants == 23

        calcul = eligible.calcul
        assert calcul.bail_id == bail.pk
        assert calcul.ancien_loyer == Decimal('1000.00')
        assert calcul.nouveau_loyer == Decimal('1035.71')
        assert calcul.pourcentage_augmentation == Decimal('3.57')
        assert calcul.ancien_indice_libelle == "T1 2023"
        assert calcul.nouvel_indice_libelle == "T1 2025"
        assert calcul.indice_estime is False
        assert calcul.date_effet == date(2025, 3, 15)

    def test_indice_estime(self, creer_bail, creer_indice):
        creer_indice(2023, 1, '140.00')
        creer_indice(2024, 4, '144.20')
        bail = creer_bail()

        calcul = scanner([bail]).eligibles[0].calcul

        assert calcul.nouvel_indice == Decimal('144.20')
        assert calcul.indice_estime is True
        assert calcul.estime_depuis == "T4 2024"
        assert calcul.nouveau_loyer == Decimal('1030.00')
        assert calcul.pourcentage_augmentation == Decimal('3.00')

    def test_fenetre(self, creer_bail, indices_2025):
        bail = creer_bail()

        assert scanner([bail], aujourd_hui=date(2025, 1, 1)).eligibles == []
        assert len(scanner([bail], aujourd_hui=date(2025, 1, 1), fenetre_jours=80).eligibles) == 1

        le_jour_meme = scanner([bail], aujourd_hui=date(2025, 3, 15), fenetre_jours=0).eligibles
        assert [e.jours_restants for e in le_jour_meme] == [0]

    def test_fenetre_par_defaut_configurable(self, creer_bail, indices_2025, settings):
        settings.INDEXATION = {'FENETRE_JOURS': 10}

        resultat = EligibiliteScanner().scanner([creer_bail()], aujourd_hui=AUJOURD_HUI)

        assert resultat.eligibles == []

    def test_fenetre_negative(self, creer_bail):
        with pytest.raises(DonneeInvalideError):
            scanner([creer_bail()], fenetre_jours=-1)

    def test_baux_non_indexables_ignores(self, creer_bail, indices_2025):
        baux = [
            creer_bail(statut='INACTIF'),
            creer_bail(indexation_active=False),
            creer_bail(annee_reference=None, trimestre_reference=None),
        ]

        resultat = scanner(baux)

        assert resultat.eligibles == []
        assert resultat.avertissements == []

    def test_pas_de_revision_avant_le_premier_anniversaire(self, creer_bail, indices_2025):
        bail = creer_bail(date_debut=date(2025, 3, 1), annee_reference=2025, trimestre_reference=1)

        assert scanner([bail]).eligibles == []

    def test_deja_indexe_pour_cet_anniversaire(self, creer_bail, indices_2025):
        bail = creer_bail(date_derniere_indexation=date(2025, 3, 15))

        assert scanner([bail], aujourd_hui=date(2025, 3, 15)).eligibles == []

    def test_indexe_l_annee_precedente(self, creer_bail, creer_indice):
        creer_indice(2024, 1, '143.46')
        creer_indice(2025, 1, '145.47')
        bail = creer_bail(annee_reference=2024, date_derniere_indexation=date(2024, 3, 15))

        calcul = scanner([bail]).eligibles[0].calcul

        assert calcul.ancien_indice == Decimal('143.46')
        assert calcul.date_derniere_indexation == date(2024, 3, 15)

    def test_reference_manquante(self, creer_bail, indices_2025):
        orphelin = creer_bail(annee_reference=2022, trimestre_reference=4)
        bail = creer_bail()

        resultat = scanner([orphelin, bail])

        assert [e.bail for e in resultat.eligibles] == [bail]
        assert len(resultat.avertissements) == 1
        avertissement = resultat.avertissements[0]
        assert avertissement.bail_id == orphelin.pk
        assert avertissement.code == REFERENCE_MANQUANTE
        assert "T4 2022" in avertissement.message

    def test_aucun_indice_publie(self, creer_bail, indices_2025):
        class ResolverSansIndice:
            def resoudre(self, date_cible):
                raise IndiceIndisponibleError()

        bail = creer_bail()
        resultat = EligibiliteScanner(resolver=ResolverSansIndice()).scanner(
            [bail], fenetre_jours=60, aujourd_hui=AUJOURD_HUI)

        assert resultat.eligibles == []
        assert [(a.bail_id, a.code) for a in resultat.avertissements] == [(bail.pk, INDISPONIBLE)]

    def test_indice_invalide(self, creer_bail, indices_2025):
        class ResolverIndiceNul:
            def resoudre(self, date_cible):
                indice = IndiceReference(annee=2025, trimestre=1, valeur=Decimal('0'))
                return IndiceResolu(indice=indice, trimestre=Trimestre(2025, 1))

        bail = creer_bail()
        resultat = EligibiliteScanner(resolver=ResolverIndiceNul()).scanner(
            [bail], fenetre_jours=60, aujourd_hui=AUJOURD_HUI)

        assert resultat.eligibles == []
        assert [(a.bail_id, a.code) for a in resultat.avertissements] == [(bail.pk, INDICE_INVALIDE)]

    def test_tri_et_doublons(self, creer_bail, indices_2025):
        loin = creer_bail(date_debut=date(2023, 3, 30))
        proche_1 = creer_bail(date_debut=date(2023, 3, 1))
        proche_2 = creer_bail(date_debut=date(2023, 3, 1))

        resultat = scanner([loin, proche_2, proche_1, loin])

        assert [e.bail.pk for e in resultat.eligibles] == [proche_1.pk, proche_2.pk, loin.pk]
        assert [e.jours_restants for e in resultat.eligibles] == [9, 9, 38]

    def test_apercu(self, creer_bail, indices_2025):
        bail = creer_bail()
        sans_reference = creer_bail(date_debut=date(2023, 2, 10), annee_reference=None, trimestre_reference=None)
        orphelin = creer_bail(date_debut=date(2022, 6, 1), annee_reference=2022, trimestre_reference=2)
        inactif = creer_bail(statut='INACTIF')

        situations = EligibiliteScanner().apercu([bail, sans_reference, orphelin, inactif], aujourd_hui=AUJOURD_HUI)

        assert [s.bail for s in situations] == [bail, orphelin, sans_reference]
        assert situations[0].calcul.nouveau_loyer == Decimal('1035.71')
        assert situations[1].calcul is None
        assert situations[2].reference == Trimestre(2023, 1)
        assert situations[2].jours_restants == 355


@pytest.mark.django_db
class TestIndexationApplier:

    @pytest.fixture
    def bail(self, creer_bail, indices_2025):
        return creer_bail()

    @pytest.fixture
    def calcul(self, bail):
        return scanner([bail]).eligibles[0].calcul

    def test_application(self, bail, calcul):
        historique = IndexationApplier().appliquer(bail.pk, calcul, aujourd_hui=AUJOURD_HUI)

        bail.refresh_from_db()
        assert bail.loyer_hc == Decimal('1035.71')
        assert bail.date_derniere_indexation == AUJOURD_HUI
        assert bail.reference == Trimestre(2025, 1)

        assert historique.bail_id == bail.pk
        assert historique.ancien_loyer == Decimal('1000.00')
        assert historique.nouveau_loyer == Decimal('1035.71')
        assert historique.ancien_indice_libelle == "T1 2023"
        assert historique.nouvel_indice_libelle == "T1 2025"
        assert historique.pourcentage_augmentation == Decimal('3.57')
        assert historique.date_application == AUJOURD_HUI
        assert historique.lettre_generee is False

    def test_plus_eligible_apres_application(self, bail, calcul):
        IndexationApplier().appliquer(bail.pk, calcul, aujourd_hui=AUJOURD_HUI)
        bail.refresh_from_db()

        assert scanner([bail]).eligibles == []
        assert scanner([bail], aujourd_hui=date(2025, 3, 10)).eligibles == []
        assert scanner([bail], aujourd_hui=date(2025, 3, 15)).eligibles == []

    def test_cycle_suivant(self, bail, calcul, creer_indice):
        IndexationApplier().appliquer(bail.pk, calcul, aujourd_hui=AUJOURD_HUI)
        creer_indice(2026, 1, '148.00')
        bail.refresh_from_db()

        eligibles = scanner([bail], aujourd_hui=date(2026, 2, 20)).eligibles

        assert len(eligibles) == 1
        assert eligibles[0].calcul.ancien_loyer == Decimal('1035.71')
        assert eligibles[0].calcul.ancien_indice == Decimal('145.00')
        assert eligibles[0].calcul.nouvel_indice_libelle == "T1 2026"

    def test_double_application_refusee(self, bail, calcul):
        applier = IndexationApplier()
        applier.appliquer(bail.pk, calcul, aujourd_hui=AUJOURD_HUI)

        with pytest.raises(ModificationConcurrenteError) as excinfo:
            applier.appliquer(bail.pk, calcul, aujourd_hui=AUJOURD_HUI)

        assert excinfo.value.bail_id == bail.pk
        bail.refresh_from_db()
        assert bail.loyer_hc == Decimal('1035.71')
        assert HistoriqueIndexation.objects.filter(bail=bail).count() == 1

    @pytest.mark.parametrize("champs", [{'statut': 'INACTIF'}, {'indexation_active': False}])
    def test_bail_modifie_depuis_le_calcul(self, bail, calcul, champs):
        Bail.objects.filter(pk=bail.pk).update(**champs)

        with pytest.raises(ModificationConcurrenteError):
            IndexationApplier().appliquer(bail.pk, calcul, aujourd_hui=AUJOURD_HUI)

        assert not HistoriqueIndexation.objects.exists()

    def test_bail_introuvable(self, calcul):
        with pytest.raises(BailIntrouvableError):
            IndexationApplier().appliquer(9999, replace(calcul, bail_id=9999))

    def test_calcul_d_un_autre_bail(self, bail, calcul):
        with pytest.raises(DonneeInvalideError):
            IndexationApplier().appliquer(bail.pk + 1, calcul)

    @pytest.mark.parametrize("falsification", [
        {'nouveau_loyer': Decimal('9999.00')},
        {'pourcentage_augmentation': Decimal('12.00')},
        {'nouvel_indice': Decimal('160.00')},
        {'ancien_indice': Decimal('0')},
    ])
    def test_calcul_incoherent_refuse(self, bail, calcul, falsification):
        with pytest.raises(DonneeInvalideError):
            IndexationApplier().appliquer(bail.pk, replace(calcul, **falsification), aujourd_hui=AUJOURD_HUI)

        bail.refresh_from_db()
        assert bail.loyer_hc == Decimal('1000.00')
        assert bail.date_derniere_indexation is None
        assert not HistoriqueIndexation.objects.exists()

    def test_loyer_modifie_depuis_le_calcul(self, bail, calcul):
        Bail.objects.filter(pk=bail.pk).update(loyer_hc=Decimal('1200.00'))

        with pytest.raises(ModificationConcurrenteError):
            IndexationApplier().appliquer(bail.pk, calcul, aujourd_hui=AUJOURD_HUI)

        bail.refresh_from_db()
        assert bail.loyer_hc == Decimal('1200.00')
        assert not HistoriqueIndexation.objects.exists()

    def test_reference_modifiee_depuis_le_calcul(self, bail, calcul):
        Bail.objects.filter(pk=bail.pk).update(annee_reference=2024, trimestre_reference=3)

        with pytest.raises(ModificationConcurrenteError):
            IndexationApplier().appliquer(bail.pk, calcul, aujourd_hui=AUJOURD_HUI)

        bail.refresh_from_db()
        assert bail.reference == Trimestre(2024, 3)
        assert bail.loyer_hc == Decimal('1000.00')
        assert not HistoriqueIndexation.objects.exists()

    def test_echec_de_l_historique_annule_la_revision(self, bail, calcul):
        class HistoriqueEnPanne(HistoriqueRepository):
            def ajouter(self, **champs):
                raise RuntimeError("base indisponible")

        with pytest.raises(RuntimeError):
            IndexationApplier(historique=HistoriqueEnPanne()).appliquer(bail.pk, calcul, aujourd_hui=AUJOURD_HUI)

        bail.refresh_from_db()
        assert bail.loyer_hc == Decimal('1000.00')
        assert bail.date_derniere_indexation is None
        assert bail.reference == Trimestre(2023, 1)

    def test_marquer_lettre_generee(self, bail, calcul):
        applier = IndexationApplier()
        with pytest.raises(HistoriqueIntrouvableError):
            applier.marquer_lettre_generee(bail.pk)

        applier.appliquer(bail.pk, calcul, aujourd_hui=AUJOURD_HUI)

        assert applier.marquer_lettre_generee(bail.pk).lettre_generee is True
        assert applier.marquer_lettre_generee(bail.pk).lettre_generee is True
        assert HistoriqueIndexation.objects.get(bail=bail).lettre_generee is True

    def test_historique(self, bail, calcul, creer_bail, proprietaire):
        autre = creer_bail(proprietaire=proprietaire)
        applier = IndexationApplier()
        applier.appliquer(bail.pk, calcul, aujourd_hui=AUJOURD_HUI)
        applier.appliquer(autre.pk, scanner([autre]).eligibles[0].calcul, aujourd_hui=date(2025, 2, 21))

        assert [h.bail_id for h in applier.historique_indexations()] == [autre.pk, bail.pk]
        assert [h.bail_id for h in applier.historique_indexations(bail_id=bail.pk)] == [bail.pk]
        assert [h.bail_id for h in applier.historique_indexations(proprietaire_id=proprietaire.pk)] == [autre.pk]

    def test_donnees_lettre(self, calcul):
        donnees = calcul.donnees_lettre()

        assert donnees['nouveau_loyer'] == Decimal('1035.71')
        assert donnees['ancien_indice_libelle'] == "T1 2023"
        assert donnees['date_effet'] == date(2025, 3, 15)
        assert donnees['indice_estime'] is False
