from django.contrib import admin, messages

from .models import City, CollectionMetadata, WeatherRecord


class CollectionMetadataInline(admin.StackedInline):
    model = CollectionMetadata
    can_delete = False
    readonly_fields = [
        'first_collection_date',
        'last_successful_fetch',
        'last_failed_fetch',
        'consecutive_failures',
        'total_records',
    ]


@admin.register(City)
class CityAdmin(admin.ModelAdmin):
    list_display = ['name', 'state', 'country', 'latitude', 'longitude', 'total_records', 'consecutive_failures']
    search_fields = ['name', 'country']
    inlines = [CollectionMetadataInline]
    actions = ['collect_weather_now']

    @admin.display(description='Records')
    def total_records(self, obj):
        return obj.metadata.total_records if hasattr(obj, 'metadata') else 0

    @admin.display(description='Failures')
    def consecutive_failures(self, obj):
        return obj.metadata.consecutive_failures if hasattr(obj, 'metadata') else 0

    @admin.action(description='Collect weather now (all cities)')
    def collect_weather_now(self, request, queryset):
        from apps.weathertracker.collector import get_collector

        report = get_collector().run_collection_pass()
        if report.skipped:
            self.message_user(request, 'Collection already in progress', messages.WARNING)
            return
        level = messages.SUCCESS if not report.failed else messages.WARNING
        self.message_user(
            request,
            f'Collection complete: {report.succeeded} succeeded, {report.failed} failed',
            level,
        )


@admin.register(WeatherRecord)
class WeatherRecordAdmin(admin.ModelAdmin):
    list_display = ['city', 'timestamp', 'temperature', 'weather_description', 'is_forecast', 'created_at']
    list_filter = ['is_forecast', 'city']
    date_hierarchy = 'timestamp'
