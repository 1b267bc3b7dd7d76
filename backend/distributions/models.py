from datetime import datetime

from django.db import models

from .overdue import OverdueFlags, overdue_flags


class DistributionStatus(models.TextChoices):
    SCHEDULED = "SCHEDULED", "Scheduled"
    PARTIALLY_CONFIRMED = "PARTIALLY_CONFIRMED", "Partially confirmed"
    COMPLETED = "COMPLETED", "Completed"
    REJECTED = "REJECTED", "Rejected"


FINAL_STATUSES = frozenset({DistributionStatus.COMPLETED, DistributionStatus.REJECTED})


class MaterialDistribution(models.Model):
    """
    Materials to be handed to a farmer for one plot cultivation.

    Needs confirmation from the group supervisor (distributor) and then from the
    farmer (receiver). Overdue status is derived from the deadlines at read
    time; see distributions.overdue.
    """
    id = models.BigAutoField(primary_key=True)
    plot_cultivation = models.ForeignKey(
        'farms.PlotCultivation', on_delete=models.PROTECT, related_name='material_distributions'
    )
    material = models.ForeignKey('materials.Material', on_delete=models.PROTECT, related_name='distributions')
    # Production plan task that required this material, if any
    related_task_id = models.BigIntegerField(blank=True, null=True)
    quantity_distributed = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(
        max_length=24, choices=DistributionStatus.choices, default=DistributionStatus.SCHEDULED
    )

    scheduled_distribution_date = models.DateTimeField()
    distribution_deadline = models.DateTimeField()
    actual_distribution_date = models.DateTimeField(blank=True, null=True)
    supervisor_confirmation_deadline = models.DateTimeField()
    farmer_confirmation_deadline = models.DateTimeField(blank=True, null=True)

    supervisor_confirmed_by = models.BigIntegerField(blank=True, null=True)
    supervisor_confirmed_at = models.DateTimeField(blank=True, null=True)
    supervisor_notes = models.CharField(max_length=500, blank=True, null=True)

    farmer_confirmed_at = models.DateTimeField(blank=True, null=True)
    farmer_notes = models.CharField(max_length=500, blank=True, null=True)

    rejection_reason = models.CharField(max_length=500, blank=True, null=True)
    # Proof of distribution (photos of materials, delivery, receipt)
    image_urls = models.JSONField(default=list, blank=True)

    # Optimistic concurrency token, bumped by every workflow transition
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Distribution {self.id} ({self.status})"

    @property
    def is_final(self) -> bool:
        return self.status in FINAL_STATUSES

    def overdue_flags(self, now: datetime) -> OverdueFlags:
        return overdue_flags(self, now)

    class Meta:
        db_table = 'material_distributions'
        ordering = ['scheduled_distribution_date', 'id']
        indexes = [
            models.Index(fields=['plot_cultivation', 'status'], name='mat_dist_pc_status_idx'),
        ]
