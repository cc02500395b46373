from django.contrib import admin
from .models import IdempotencyRecord


@admin.register(IdempotencyRecord)
class IdempotencyRecordAdmin(admin.ModelAdmin):
    list_display = ('key', 'scope', 'user', 'status_code', 'created_at')
    list_filter = ('scope', 'created_at')
    search_fields = ('key', 'user__email')
    readonly_fields = ('key', 'scope', 'user', 'status_code', 'response_body', 'created_at')
