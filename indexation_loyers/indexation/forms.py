from django import forms

from .exceptions import DonneeInvalideError
from .models import IndiceReference
from .repositories import IndiceRepository


class IndiceReferenceForm(forms.ModelForm):
    """Saisie d'un indice IRL dans l'admin, avec les contrôles du dépôt (bornes d'année, valeur positive)."""

    class Meta:
        model = IndiceReference
        fields = ['annee', 'trimestre', 'valeur']

    def clean(self):
        cleaned_data = super().clean()
        # Année et trimestre sont en lecture seule une fois l'indice créé
        annee = cleaned_data.get('annee', self.instance.annee)
        trimestre = cleaned_data.get('trimestre', self.instance.trimestre)
        valeur = cleaned_data.get('valeur')
        if annee is None or trimestre is None or valeur is None:
            return cleaned_data

        try:
            IndiceRepository().valider(annee, trimestre, valeur)
        except DonneeInvalideError as e:
            raise forms.ValidationError(e.message)
        return cleaned_data
