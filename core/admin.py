from django.contrib import admin

from core.models import NumberSeries


@admin.register(NumberSeries)
class NumberSeriesAdmin(admin.ModelAdmin):
    list_display = ("code", "prefix", "next_number", "min_width")
    search_fields = ("code",)
