from datetime import date
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from indexation.models import Bail, IndiceReference, Proprietaire


@pytest.fixture
def creer_indice(db):
    def _creer(annee, trimestre, valeur):
        return IndiceReference.objects.create(annee=annee, trimestre=trimestre, valeur=Decimal(valeur))
    return _creer


@pytest.fixture
def creer_bail(db):
    """Bail du scénario de référence : entrée le 15/03/2023, IRL T1 2023, 1000 € HC."""
    def _creer(**champs):
        valeurs = {
            'libelle': 'Gambetta - Porte 12',
            'date_debut': date(2023, 3, 15),
            'loyer_hc': Decimal('1000.00'),
            'annee_reference': 2023,
            'trimestre_reference': 1,
        }
        valeurs.update(champs)
        return Bail.objects.create(**valeurs)
    return _creer


@pytest.fixture
def proprietaire(db):
    return Proprietaire.objects.create(nom="SCI Les Tilleuls")


@pytest.fixture
def api_client(db, django_user_model):
    admin = django_user_model.objects.create_superuser('admin', 'admin@example.com', 'secret')
    client = APIClient()
    client.force_authenticate(user=admin)
    return client
