import django_filters as filters

from settlements.models import Settlement


class SettlementFilter(filters.FilterSet):
    store_id = filters.UUIDFilter(field_name="store_id")
    start_date = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    end_date = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = Settlement
        fields = ["store_id", "status", "start_date", "end_date"]
