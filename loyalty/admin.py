from django.contrib import admin
from .models import LoyaltyLedgerEntry, LoyaltyMember


@admin.register(LoyaltyMember)
class LoyaltyMemberAdmin(admin.ModelAdmin):
    list_display = ('user', 'status', 'tier', 'marketing_consent', 'terms_version', 'joined_at')
    list_filter = ('status', 'tier', 'marketing_consent')
    search_fields = ('user__email', 'user__username')


@admin.register(LoyaltyLedgerEntry)
class LoyaltyLedgerEntryAdmin(admin.ModelAdmin):
    list_display = ('user', 'points', 'type', 'source', 'created_at')
    list_filter = ('type',)
    search_fields = ('user__email',)

    # append-only
    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
