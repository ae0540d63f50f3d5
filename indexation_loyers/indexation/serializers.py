from rest_framework import serializers

from .models import Bail, HistoriqueIndexation, IndiceReference, TRIMESTRE_CHOICES
from .services import CalculIndexation
from .trimestres import Trimestre, periode_publication

TRIMESTRES = [valeur for valeur, _ in TRIMESTRE_CHOICES]


class IndiceReferenceSerializer(serializers.ModelSerializer):
    libelle = serializers.CharField(read_only=True)
    periode_publication = serializers.SerializerMethodField()

    class Meta:
        model = IndiceReference
        fields = ['id', 'annee', 'trimestre', 'valeur', 'libelle', 'periode_publication', 'date_creation']
        read_only_fields = ['date_creation']
        # Les doublons sont refusés par la contrainte unique de la base
        validators = []

    def get_periode_publication(self, obj):
        return periode_publication(obj.trimestre)


class BailSerializer(serializers.ModelSerializer):
    proprietaire = serializers.StringRelatedField()

    class Meta:
        model = Bail
        fields = ['id', 'libelle', 'proprietaire', 'date_debut', 'statut', 'loyer_hc',
                  'indexation_active', 'annee_reference', 'trimestre_reference',
                  'date_derniere_indexation']


class HistoriqueIndexationSerializer(serializers.ModelSerializer):
    class Meta:
        model = HistoriqueIndexation
        fields = ['id', 'bail', 'ancien_loyer', 'nouveau_loyer', 'ancien_indice_valeur',
                  'ancien_indice_libelle', 'nouvel_indice_valeur', 'nouvel_indice_libelle',
                  'indice_estime', 'estime_depuis', 'pourcentage_augmentation',
                  'date_application', 'lettre_generee']
        read_only_fields = fields


class CalculIndexationSerializer(serializers.Serializer):
    """Calcul d'indexation renvoyé par la recherche et renvoyé tel quel pour l'appliquer."""
    bail_id = serializers.IntegerField(read_only=True)
    ancien_loyer = serializers.DecimalField(max_digits=10, decimal_places=2)
    nouveau_loyer = serializers.DecimalField(max_digits=10, decimal_places=2)
    ancien_indice = serializers.DecimalField(max_digits=8, decimal_places=2)
    ancien_indice_annee = serializers.IntegerField(source='ancien_trimestre.annee')
    ancien_indice_trimestre = serializers.ChoiceField(choices=TRIMESTRES, source='ancien_trimestre.trimestre')
    ancien_indice_libelle = serializers.CharField(read_only=True)
    nouvel_indice = serializers.DecimalField(max_digits=8, decimal_places=2)
    nouvel_indice_annee = serializers.IntegerField(source='nouveau_trimestre.annee')
    nouvel_indice_trimestre = serializers.ChoiceField(choices=TRIMESTRES, source='nouveau_trimestre.trimestre')
    nouvel_indice_libelle = serializers.CharField(read_only=True)
    pourcentage_augmentation = serializers.DecimalField(max_digits=6, decimal_places=2)
    date_effet = serializers.DateField()
    date_derniere_indexation = serializers.DateField(allow_null=True, required=False, default=None)
    indice_estime = serializers.BooleanField(required=False, default=False)
    estime_depuis = serializers.CharField(required=False, allow_blank=True, default='')

    def creer_calcul(self, bail_id):
        """Construit le CalculIndexation à partir des données validées."""
        donnees = dict(self.validated_data)
        ancien = donnees.pop('ancien_trimestre')
        nouveau = donnees.pop('nouveau_trimestre')
        return CalculIndexation(
            bail_id=bail_id,
            ancien_trimestre=Trimestre(ancien['annee'], ancien['trimestre']),
            nouveau_trimestre=Trimestre(nouveau['annee'], nouveau['trimestre']),
            **donnees
        )


class AvertissementSerializer(serializers.Serializer):
    bail_id = serializers.IntegerField()
    code = serializers.CharField()
    message = serializers.CharField()


class BailEligibleSerializer(serializers.Serializer):
    bail = BailSerializer()
    date_anniversaire = serializers.DateField()
    jours_restants = serializers.IntegerField()
    calcul = CalculIndexationSerializer()


class ResultatScanSerializer(serializers.Serializer):
    eligibles = BailEligibleSerializer(many=True)
    avertissements = AvertissementSerializer(many=True)


class SituationBailSerializer(serializers.Serializer):
    bail = BailSerializer()
    date_anniversaire = serializers.DateField()
    jours_restants = serializers.IntegerField()
    reference = serializers.CharField(source='reference.libelle')
    calcul = CalculIndexationSerializer(allow_null=True)
