from django.db import models


class GroupStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    INACTIVE = "INACTIVE", "Inactive"


class Group(models.Model):
    id = models.BigAutoField(primary_key=True)
    name = models.TextField()
    # Identity lives outside this service; supervisors are referenced by id
    supervisor_id = models.BigIntegerField(blank=True, null=True, db_index=True)
    status = models.CharField(max_length=16, choices=GroupStatus.choices, default=GroupStatus.ACTIVE)
    total_area_ha = models.DecimalField(max_digits=12, decimal_places=4, blank=True, null=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'farm_groups'


class Plot(models.Model):
    id = models.BigAutoField(primary_key=True)
    farmer_id = models.BigIntegerField(db_index=True)
    group = models.ForeignKey(Group, on_delete=models.SET_NULL, related_name='plots', blank=True, null=True)
    area_ha = models.DecimalField(max_digits=12, decimal_places=4)
    sheet_number = models.IntegerField(blank=True, null=True)
    parcel_number = models.IntegerField(blank=True, null=True)

    def __str__(self):
        return f"Plot {self.parcel_number or '?'}, sheet {self.sheet_number or '?'}"

    class Meta:
        db_table = 'plots'


class PlotCultivation(models.Model):
    id = models.BigAutoField(primary_key=True)
    plot = models.ForeignKey(Plot, on_delete=models.PROTECT, related_name='cultivations')
    season = models.CharField(max_length=64)
    area_ha = models.DecimalField(max_digits=12, decimal_places=4, blank=True, null=True)

    def __str__(self):
        return f"{self.plot} - {self.season}"

    @property
    def group(self):
        return self.plot.group if self.plot_id else None

    class Meta:
        db_table = 'plot_cultivations'
