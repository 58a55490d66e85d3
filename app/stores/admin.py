from django.contrib import admin

from stores.models import Store


@admin.register(Store)
class StoreAdmin(admin.ModelAdmin):
    list_display = ["name", "email", "phone_number", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "email", "phone_number"]
    readonly_fields = ["id", "created_at", "updated_at"]
