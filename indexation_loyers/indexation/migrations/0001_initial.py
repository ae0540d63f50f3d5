import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


TRIMESTRE_CHOICES = [
    (1, 'T1 (janvier - mars)'),
    (2, 'T2 (avril - juin)'),
    (3, 'T3 (juillet - septembre)'),
    (4, 'T4 (octobre - décembre)'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='IndiceReference',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('annee', models.PositiveIntegerField(verbose_name='Année')),
                ('trimestre', models.PositiveSmallIntegerField(choices=TRIMESTRE_CHOICES)),
                ('valeur', models.DecimalField(decimal_places=2, max_digits=8, verbose_name="Valeur de l'indice")),
                ('date_creation', models.DateTimeField(auto_now_add=True, verbose_name='Saisi le')),
            ],
            options={
                'verbose_name': 'Indice IRL',
                'verbose_name_plural': 'Indices IRL',
                'ordering': ['-annee', '-trimestre'],
                'constraints': [
                    models.UniqueConstraint(fields=('annee', 'trimestre'), name='indice_unique_par_trimestre'),
                    models.CheckConstraint(condition=models.Q(('trimestre__gte', 1), ('trimestre__lte', 4)), name='indice_trimestre_valide'),
                    models.CheckConstraint(condition=models.Q(('valeur__gt', 0)), name='indice_valeur_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Proprietaire',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('nom', models.CharField(max_length=200, verbose_name='Nom ou Raison Sociale')),
            ],
            options={
                'verbose_name': 'Propriétaire',
                'verbose_name_plural': 'Propriétaires',
            },
        ),
        migrations.CreateModel(
            name='Bail',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('libelle', models.CharField(blank=True, help_text='Ex: Immeuble Gambetta - Porte 12', max_length=200)),
                ('date_debut', models.DateField(default=django.utils.timezone.now, verbose_name="Date d'entrée")),
                ('statut', models.CharField(choices=[('ACTIF', 'Actif'), ('INACTIF', 'Inactif')], default='ACTIF', max_length=10)),
                ('loyer_hc', models.DecimalField(decimal_places=2, max_digits=10, verbose_name='Loyer HC')),
                ('indexation_active', models.BooleanField(default=True, verbose_name='Indexation IRL activée')),
                ('annee_reference', models.PositiveIntegerField(blank=True, null=True, verbose_name="Année de l'indice de référence")),
                ('trimestre_reference', models.PositiveSmallIntegerField(blank=True, choices=TRIMESTRE_CHOICES, null=True, verbose_name="Trimestre de l'indice de référence")),
                ('date_derniere_indexation', models.DateField(blank=True, null=True, verbose_name='Dernière indexation')),
                ('proprietaire', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='baux', to='indexation.proprietaire', verbose_name='Propriétaire / Bailleur')),
            ],
            options={
                'verbose_name': 'Bail',
                'verbose_name_plural': 'Baux',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('loyer_hc__gt', 0)), name='bail_loyer_positif'),
                    models.CheckConstraint(
                        condition=models.Q(('trimestre_reference__isnull', True), models.Q(('trimestre_reference__gte', 1), ('trimestre_reference__lte', 4)), _connector='OR'),
                        name='bail_trimestre_reference_valide',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='HistoriqueIndexation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('ancien_loyer', models.DecimalField(decimal_places=2, max_digits=10)),
                ('nouveau_loyer', models.DecimalField(decimal_places=2, max_digits=10)),
                ('ancien_indice_valeur', models.DecimalField(decimal_places=2, max_digits=8, verbose_name='Ancien indice')),
                ('ancien_indice_libelle', models.CharField(help_text='Ex: T1 2024', max_length=20)),
                ('nouvel_indice_valeur', models.DecimalField(decimal_places=2, max_digits=8, verbose_name='Nouvel indice')),
                ('nouvel_indice_libelle', models.CharField(help_text='Ex: T1 2025', max_length=20)),
                ('indice_estime', models.BooleanField(default=False, verbose_name='Indice estimé')),
                ('estime_depuis', models.CharField(blank=True, help_text="Trimestre de l'indice utilisé si estimé", max_length=20)),
                ('pourcentage_augmentation', models.DecimalField(decimal_places=2, max_digits=6, verbose_name='Variation (%)')),
                ('date_application', models.DateField(verbose_name='Appliquée le')),
                ('lettre_generee', models.BooleanField(default=False, verbose_name='Courrier généré')),
                ('date_creation', models.DateTimeField(auto_now_add=True)),
                ('bail', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='indexations', to='indexation.bail')),
            ],
            options={
                'verbose_name': 'Indexation',
                'verbose_name_plural': 'Historique des indexations',
                'ordering': ['-date_application', '-id'],
            },
        ),
    ]
