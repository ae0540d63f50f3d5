from django.contrib import admin
from django.utils.safestring import mark_safe
import logging

from .conf import get_config
from .exceptions import IndexationError
from .forms import IndiceReferenceForm
from .models import Bail, HistoriqueIndexation, IndiceReference, Proprietaire
from .repositories import HistoriqueRepository, IndiceRepository
from .services import EligibiliteScanner, IndexationApplier
from .trimestres import periode_publication

logger = logging.getLogger(__name__)

admin.site.site_header = "Indexation des loyers"
admin.site.site_title = "Administration IRL"
admin.site.index_title = "Révisions de loyer"


@admin.register(IndiceReference)
class IndiceReferenceAdmin(admin.ModelAdmin):
    form = IndiceReferenceForm
    list_display = ('get_libelle', 'valeur', 'get_publication', 'date_creation')
    list_filter = ('annee', 'trimestre')
    ordering = ('-annee', '-trimestre')

    def get_libelle(self, obj):
        return obj.libelle
    get_libelle.short_description = 'Trimestre'

    def get_publication(self, obj):
        return periode_publication(obj.trimestre)
    get_publication.short_description = 'Publication'

    def get_readonly_fields(self, request, obj=None):
        if obj is not None:
            return ('annee', 'trimestre', 'date_creation')
        return ('date_creation',)

    def get_actions(self, request):
        # La suppression passe par delete_model pour protéger les indices de référence
        actions = super().get_actions(request)
        actions.pop('delete_selected', None)
        return actions

    def has_delete_permission(self, request, obj=None):
        if obj is not None and IndiceRepository().nb_baux_references(obj):
            return False
        return super().has_delete_permission(request, obj)

    def save_model(self, request, obj, form, change):
        if change:
            super().save_model(request, obj, form, change)
            return
        indice = IndiceRepository().ajouter(obj.annee, obj.trimestre, obj.valeur)
        obj.pk = indice.pk
        obj.date_creation = indice.date_creation

    def delete_model(self, request, obj):
        IndiceRepository().supprimer(obj.pk)


@admin.register(Proprietaire)
class ProprietaireAdmin(admin.ModelAdmin):
    search_fields = ('nom',)


class HistoriqueIndexationInline(admin.TabularInline):
    model = HistoriqueIndexation
    extra = 0
    fields = ('date_application', 'ancien_loyer', 'nouveau_loyer', 'ancien_indice_libelle', 'nouvel_indice_libelle', 'pourcentage_augmentation', 'indice_estime', 'lettre_generee')
    readonly_fields = fields
    can_delete = False # On garde l'historique

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Bail)
class BailAdmin(admin.ModelAdmin):
    list_display = ('__str__', 'proprietaire', 'date_debut', 'get_loyer_hc', 'get_reference', 'date_derniere_indexation', 'get_indexation_badge')
    list_filter = ('statut', 'indexation_active', 'proprietaire', ('date_debut', admin.DateFieldListFilter))
    search_fields = ('libelle', 'proprietaire__nom')
    date_hierarchy = 'date_debut'
    inlines = [HistoriqueIndexationInline]
    actions = ['appliquer_indexation']

    def get_loyer_hc(self, obj):
        return f"{obj.loyer_hc} €"
    get_loyer_hc.short_description = 'Loyer HC'
    get_loyer_hc.admin_order_field = 'loyer_hc'

    def get_reference(self, obj):
        return obj.reference.libelle if obj.reference else "-"
    get_reference.short_description = 'Indice de référence'

    def get_indexation_badge(self, obj):
        """Badge coloré pour l'indexation activée/désactivée."""
        if obj.est_indexable:
            return mark_safe(
                '<span style="background-color: #28a745; color: white; padding: 3px 10px; border-radius: 3px; font-weight: bold;">✓ Indexé</span>'
            )
        return mark_safe(
            '<span style="background-color: #6c757d; color: white; padding: 3px 10px; border-radius: 3px;">✗ Non indexé</span>'
        )
    get_indexation_badge.short_description = 'Indexation'
    get_indexation_badge.admin_order_field = 'indexation_active'

    @admin.action(description="Appliquer l'indexation IRL (baux arrivant à échéance)")
    def appliquer_indexation(self, request, queryset):
        resultat = EligibiliteScanner().scanner(list(queryset), fenetre_jours=get_config()['FENETRE_JOURS'])
        applier = IndexationApplier()

        nb_appliques = 0
        for eligible in resultat.eligibles:
            try:
                applier.appliquer(eligible.bail.pk, eligible.calcul)
                nb_appliques += 1
            except IndexationError as e:
                logger.warning(f"Indexation admin refusée pour le bail {eligible.bail.pk} : {e}")
                self.message_user(request, str(e), level='error')

        for avertissement in resultat.avertissements:
            self.message_user(request, avertissement.message, level='warning')

        self.message_user(request, f'{nb_appliques} bail(s) indexé(s).')


@admin.register(HistoriqueIndexation)
class HistoriqueIndexationAdmin(admin.ModelAdmin):
    list_display = ('bail', 'date_application', 'ancien_loyer', 'nouveau_loyer', 'pourcentage_augmentation', 'nouvel_indice_libelle', 'indice_estime', 'lettre_generee')
    list_filter = ('lettre_generee', 'indice_estime', 'date_application', 'bail__proprietaire')
    search_fields = ('bail__libelle',)
    actions = ['marquer_lettre_generee']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description='Marquer le courrier comme généré')
    def marquer_lettre_generee(self, request, queryset):
        depot = HistoriqueRepository()
        updated = sum(depot.marquer_lettre_generee(historique.pk) for historique in queryset)
        self.message_user(request, f'{updated} courrier(s) marqué(s) comme généré(s).')
