from django.db import models
from django.utils import timezone

from .trimestres import Trimestre

TRIMESTRE_CHOICES = [
    (1, 'T1 (janvier - mars)'),
    (2, 'T2 (avril - juin)'),
    (3, 'T3 (juillet - septembre)'),
    (4, 'T4 (octobre - décembre)'),
]


class IndiceReference(models.Model):
    """Indice de Référence des Loyers publié chaque trimestre par l'INSEE."""
    annee = models.PositiveIntegerField(verbose_name="Année")
    trimestre = models.PositiveSmallIntegerField(choices=TRIMESTRE_CHOICES)
    valeur = models.DecimalField(max_digits=8, decimal_places=2, verbose_name="Valeur de l'indice")
    date_creation = models.DateTimeField(auto_now_add=True, verbose_name="Saisi le")

    @property
    def periode(self):
        return Trimestre(self.annee, self.trimestre)

    @property
    def libelle(self):
        return self.periode.libelle

    def __str__(self):
        return f"IRL {self.libelle} : {self.valeur}"

    class Meta:
        verbose_name = "Indice IRL"
        verbose_name_plural = "Indices IRL"
        ordering = ['-annee', '-trimestre']
        constraints = [
            # Garantie d'unicité portée par la base (pas de vérification applicative)
            models.UniqueConstraint(fields=['annee', 'trimestre'], name='indice_unique_par_trimestre'),
            models.CheckConstraint(condition=models.Q(trimestre__gte=1, trimestre__lte=4), name='indice_trimestre_valide'),
            models.CheckConstraint(condition=models.Q(valeur__gt=0), name='indice_valeur_positive'),
        ]


class Proprietaire(models.Model):
    nom = models.CharField(max_length=200, verbose_name="Nom ou Raison Sociale")

    def __str__(self):
        return self.nom

    class Meta:
        verbose_name = "Propriétaire"
        verbose_name_plural = "Propriétaires"


class Bail(models.Model):
    STATUT_CHOICES = [
        ('ACTIF', 'Actif'),
        ('INACTIF', 'Inactif'),
    ]
    libelle = models.CharField(max_length=200, blank=True, help_text="Ex: Immeuble Gambetta - Porte 12")
    proprietaire = models.ForeignKey(Proprietaire, on_delete=models.SET_NULL, null=True, blank=True, related_name='baux', verbose_name="Propriétaire / Bailleur")
    date_debut = models.DateField(default=timezone.now, verbose_name="Date d'entrée")
    statut = models.CharField(max_length=10, choices=STATUT_CHOICES, default='ACTIF')
    loyer_hc = models.DecimalField(max_digits=10, decimal_places=2, verbose_name="Loyer HC")

    # Indexation des loyers (IRL)
    indexation_active = models.BooleanField(default=True, verbose_name="Indexation IRL activée")
    annee_reference = models.PositiveIntegerField(null=True, blank=True, verbose_name="Année de l'indice de référence")
    trimestre_reference = models.PositiveSmallIntegerField(choices=TRIMESTRE_CHOICES, null=True, blank=True, verbose_name="Trimestre de l'indice de référence")
    date_derniere_indexation = models.DateField(null=True, blank=True, verbose_name="Dernière indexation")

    @property
    def reference(self):
        """Trimestre de l'indice de référence, ou None s'il n'est pas renseigné."""
        if self.annee_reference is None or self.trimestre_reference is None:
            return None
        return Trimestre(self.annee_reference, self.trimestre_reference)

    @property
    def est_indexable(self):
        return self.statut == 'ACTIF' and self.indexation_active

    def __str__(self):
        return f"Bail {self.libelle or self.pk} ({self.date_debut})"

    class Meta:
        verbose_name = "Bail"
        verbose_name_plural = "Baux"
        constraints = [
            models.CheckConstraint(condition=models.Q(loyer_hc__gt=0), name='bail_loyer_positif'),
            models.CheckConstraint(
                condition=models.Q(trimestre_reference__isnull=True) | models.Q(trimestre_reference__gte=1, trimestre_reference__lte=4),
                name='bail_trimestre_reference_valide',
            ),
        ]


class HistoriqueIndexation(models.Model):
    """Trace immuable d'une révision de loyer. Seul `lettre_generee` peut évoluer."""
    bail = models.ForeignKey(Bail, on_delete=models.PROTECT, related_name='indexations')
    ancien_loyer = models.DecimalField(max_digits=10, decimal_places=2)
    nouveau_loyer = models.DecimalField(max_digits=10, decimal_places=2)
    ancien_indice_valeur = models.DecimalField(max_digits=8, decimal_places=2, verbose_name="Ancien indice")
    ancien_indice_libelle = models.CharField(max_length=20, help_text="Ex: T1 2024")
    nouvel_indice_valeur = models.DecimalField(max_digits=8, decimal_places=2, verbose_name="Nouvel indice")
    nouvel_indice_libelle = models.CharField(max_length=20, help_text="Ex: T1 2025")
    indice_estime = models.BooleanField(default=False, verbose_name="Indice estimé")
    estime_depuis = models.CharField(max_length=20, blank=True, help_text="Trimestre de l'indice utilisé si estimé")
    pourcentage_augmentation = models.DecimalField(max_digits=6, decimal_places=2, verbose_name="Variation (%)")
    date_application = models.DateField(verbose_name="Appliquée le")
    lettre_generee = models.BooleanField(default=False, verbose_name="Courrier généré")
    date_creation = models.DateTimeField(auto_now_add=True)

    def save(self, *args, **kwargs):
        if self.pk is not None:
            # Seul le passage du courrier à "généré" est permis
            if set(kwargs.get('update_fields') or ()) != {'lettre_generee'} or not self.lettre_generee:
                raise ValueError("Un historique d'indexation ne peut pas être modifié (hors courrier généré).")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Un historique d'indexation ne peut pas être supprimé.")

    def __str__(self):
        return f"{self.bail} : {self.ancien_loyer}€ -> {self.nouveau_loyer}€ ({self.date_application})"

    class Meta:
        verbose_name = "Indexation"
        verbose_name_plural = "Historique des indexations"
        ordering = ['-date_application', '-id']
