from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    IndiceReferenceViewSet,
    BailViewSet,
    baux_a_indexer,
    apercu_indexations,
    historique_indexations,
)

router = DefaultRouter()
router.register(r'indices', IndiceReferenceViewSet, basename='indice')
router.register(r'baux', BailViewSet, basename='bail')

urlpatterns = [
    # Indexation
    path('indexations/a-venir/', baux_a_indexer, name='baux_a_indexer'),
    path('indexations/apercu/', apercu_indexations, name='apercu_indexations'),
    path('indexations/historique/', historique_indexations, name='historique_indexations'),

    # API
    path('', include(router.urls)),
]
