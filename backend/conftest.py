from datetime import timedelta
from decimal import Decimal

import pytest

from core.clock import FixedClock
from distributions.models import DistributionStatus, MaterialDistribution
from farms.models import Group, Plot, PlotCultivation
from materials.models import Material, MaterialPrice
from tests.factories import FARMER_ID, NOW, SUPERVISOR_ID


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def material(db):
    return Material.objects.create(name="NPK 16-16-8", unit="kg", amount_per_package=Decimal("25"))


@pytest.fixture
def priced_material(material):
    MaterialPrice.objects.create(
        material=material,
        price_per_package=Decimal("100000"),
        valid_from=NOW - timedelta(days=30),
    )
    return material


@pytest.fixture
def group(db):
    return Group.objects.create(name="Group A", supervisor_id=SUPERVISOR_ID)


@pytest.fixture
def cultivation(group):
    plot = Plot.objects.create(farmer_id=FARMER_ID, group=group, area_ha=Decimal("1.5"))
    return PlotCultivation.objects.create(plot=plot, season="Winter-Spring 2025", area_ha=Decimal("1.5"))


@pytest.fixture
def make_distribution(cultivation, material):
    def _make(scheduled=NOW + timedelta(days=2), **overrides):
        fields = dict(
            plot_cultivation=cultivation,
            material=material,
            quantity_distributed=Decimal("50"),
            status=DistributionStatus.SCHEDULED,
            scheduled_distribution_date=scheduled,
            distribution_deadline=scheduled - timedelta(days=1),
            supervisor_confirmation_deadline=scheduled + timedelta(days=2),
        )
        fields.update(overrides)
        return MaterialDistribution.objects.create(**fields)
    return _make
