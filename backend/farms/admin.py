from django.contrib import admin

from .models import Group, Plot, PlotCultivation


@admin.register(Group)
class GroupAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "supervisor_id", "status", "total_area_ha")
    list_filter = ("status",)
    search_fields = ("name",)


@admin.register(Plot)
class PlotAdmin(admin.ModelAdmin):
    list_display = ("id", "farmer_id", "group", "area_ha", "sheet_number", "parcel_number")
    list_filter = ("group",)


@admin.register(PlotCultivation)
class PlotCultivationAdmin(admin.ModelAdmin):
    list_display = ("id", "plot", "season", "area_ha")
    list_filter = ("season",)
