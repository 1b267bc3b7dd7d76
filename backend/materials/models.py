from django.db import models
from django.db.models import Q


class MaterialType(models.TextChoices):
    FERTILIZER = "FERTILIZER", "Fertilizer"
    PESTICIDE = "PESTICIDE", "Pesticide"
    SEED = "SEED", "Seed"
    OTHER = "OTHER", "Other"


class Material(models.Model):
    id = models.BigAutoField(primary_key=True)
    name = models.TextField()
    material_type = models.CharField(max_length=16, choices=MaterialType.choices, default=MaterialType.OTHER)
    # Packaging unit label, e.g. "kg", "bottle", "bag"
    unit = models.CharField(max_length=32)
    # Quantity contained in one purchasable package (e.g., 25 kg per bag)
    amount_per_package = models.DecimalField(max_digits=12, decimal_places=4, blank=True, null=True)
    # Divisible materials are billed by fraction of a package instead of whole packages
    is_partition = models.BooleanField(default=False)
    manufacturer = models.TextField(blank=True, null=True)
    description = models.TextField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.unit})"

    class Meta:
        db_table = 'materials'
        ordering = ['name']


class MaterialPrice(models.Model):
    """
    One segment of a material's price history, valid over [valid_from, valid_to).

    valid_to is NULL for the currently effective (open) price. Rows are only
    ever closed by the arrival of a successor, never edited or deleted.
    """
    id = models.BigAutoField(primary_key=True)
    material = models.ForeignKey(Material, on_delete=models.PROTECT, related_name='prices')
    price_per_package = models.DecimalField(max_digits=14, decimal_places=2)
    valid_from = models.DateTimeField()
    valid_to = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        end = self.valid_to.isoformat() if self.valid_to else "open"
        return f"{self.material_id}: {self.price_per_package} [{self.valid_from.isoformat()}, {end})"

    @property
    def is_open(self) -> bool:
        return self.valid_to is None

    class Meta:
        db_table = 'material_prices'
        ordering = ['material', 'valid_from']
        indexes = [
            models.Index(fields=['material', 'valid_from'], name='material_prices_mat_from_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['material'],
                condition=Q(valid_to__isnull=True),
                name='material_prices_one_open_interval',
            ),
            models.CheckConstraint(
                condition=Q(price_per_package__gt=0),
                name='material_prices_price_positive',
            ),
            models.CheckConstraint(
                condition=Q(valid_to__isnull=True) | Q(valid_to__gt=models.F('valid_from')),
                name='material_prices_valid_range',
            ),
        ]
