"""
API d'administration de l'indexation des loyers.
"""
import logging

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from .exceptions import (
    ConflitError, DonneeInvalideError, IndexationError, IndiceIndisponibleError,
    IndiceInvalideError, IntrouvableError,
)
from .models import Bail, IndiceReference
from .repositories import BailRepository, IndiceRepository
from .serializers import (
    BailSerializer, CalculIndexationSerializer, HistoriqueIndexationSerializer,
    IndiceReferenceSerializer, ResultatScanSerializer, SituationBailSerializer,
)
from .services import EligibiliteScanner, IndexationApplier

logger = logging.getLogger(__name__)

STATUTS_ERREUR = [
    (DonneeInvalideError, status.HTTP_400_BAD_REQUEST),
    (IndiceInvalideError, status.HTTP_400_BAD_REQUEST),
    (IntrouvableError, status.HTTP_404_NOT_FOUND),
    (ConflitError, status.HTTP_409_CONFLICT),
    (IndiceIndisponibleError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def reponse_erreur(erreur):
    """Traduit une erreur d'indexation en réponse HTTP (avec le bail concerné)."""
    code = status.HTTP_400_BAD_REQUEST
    for classe, statut in STATUTS_ERREUR:
        if isinstance(erreur, classe):
            code = statut
            break
    return Response({'erreur': erreur.message, 'bail': erreur.bail_id}, status=code)


def parametre_entier(request, nom, defaut=None):
    valeur = request.query_params.get(nom)
    if valeur in (None, ''):
        return defaut
    try:
        return int(valeur)
    except ValueError:
        raise DonneeInvalideError(f"Paramètre '{nom}' invalide : {valeur}.")


# ============================================================================
# INDICES IRL
# ============================================================================

class IndiceReferenceViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.CreateModelMixin,
                             mixins.DestroyModelMixin, viewsets.GenericViewSet):
    queryset = IndiceReference.objects.order_by('-annee', '-trimestre')
    serializer_class = IndiceReferenceSerializer
    permission_classes = [IsAdminUser]

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            indice = IndiceRepository().ajouter(**serializer.validated_data)
        except IndexationError as e:
            return reponse_erreur(e)
        return Response(self.get_serializer(indice).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        try:
            IndiceRepository().supprimer(kwargs['pk'])
        except IndexationError as e:
            return reponse_erreur(e)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False)
    def dernier(self, request):
        try:
            indice = IndiceRepository().dernier()
        except IndexationError as e:
            return reponse_erreur(e)
        return Response(self.get_serializer(indice).data)


# ============================================================================
# BAUX
# ============================================================================

class BailViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = BailSerializer
    permission_classes = [IsAdminUser]
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        baux = Bail.objects.select_related('proprietaire').order_by('pk')
        proprietaire = parametre_entier(self.request, 'proprietaire')
        if proprietaire is not None:
            baux = baux.filter(proprietaire_id=proprietaire)
        return baux

    def handle_exception(self, exc):
        if isinstance(exc, IndexationError):
            return reponse_erreur(exc)
        return super().handle_exception(exc)

    @action(detail=True, methods=['post'], url_path='indexation')
    def appliquer_indexation(self, request, pk=None):
        """Applique le calcul transmis (tel que renvoyé par la recherche des baux à indexer)."""
        bail_id = int(pk)
        serializer = CalculIndexationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            historique = IndexationApplier().appliquer(bail_id, serializer.creer_calcul(bail_id))
        except IndexationError as e:
            logger.warning(f"Indexation refusée pour le bail {bail_id} : {e}")
            return reponse_erreur(e)

        return Response(HistoriqueIndexationSerializer(historique).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='lettre-generee')
    def lettre_generee(self, request, pk=None):
        try:
            historique = IndexationApplier().marquer_lettre_generee(int(pk))
        except IndexationError as e:
            return reponse_erreur(e)
        return Response(HistoriqueIndexationSerializer(historique).data)

    @action(detail=True)
    def historique(self, request, pk=None):
        historique = IndexationApplier().historique_indexations(bail_id=int(pk))
        return Response(HistoriqueIndexationSerializer(historique, many=True).data)


# ============================================================================
# RECHERCHE ET HISTORIQUE
# ============================================================================

@api_view(['GET'])
@permission_classes([IsAdminUser])
def baux_a_indexer(request):
    """Baux dont la date anniversaire tombe dans les `jours` prochains jours."""
    try:
        jours = parametre_entier(request, 'jours')
        proprietaire = parametre_entier(request, 'proprietaire')
        baux = BailRepository().lister_indexables(proprietaire_id=proprietaire)
        resultat = EligibiliteScanner().scanner(baux, fenetre_jours=jours)
    except IndexationError as e:
        return reponse_erreur(e)

    return Response(ResultatScanSerializer(resultat).data)


@api_view(['GET'])
@permission_classes([IsAdminUser])
def apercu_indexations(request):
    """Tous les baux indexables avec leur prochaine date anniversaire."""
    try:
        proprietaire = parametre_entier(request, 'proprietaire')
    except IndexationError as e:
        return reponse_erreur(e)

    baux = BailRepository().lister_indexables(proprietaire_id=proprietaire)
    situations = EligibiliteScanner().apercu(baux)
    return Response(SituationBailSerializer(situations, many=True).data)


@api_view(['GET'])
@permission_classes([IsAdminUser])
def historique_indexations(request):
    try:
        bail = parametre_entier(request, 'bail')
        proprietaire = parametre_entier(request, 'proprietaire')
    except IndexationError as e:
        return reponse_erreur(e)

    historique = IndexationApplier().historique_indexations(bail_id=bail, proprietaire_id=proprietaire)
    return Response(HistoriqueIndexationSerializer(historique, many=True).data)
