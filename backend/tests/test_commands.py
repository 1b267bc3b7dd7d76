import json
from datetime import timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from core.config import DEFAULTS
from core.models import SystemSetting
from materials.models import MaterialPrice
from tests.factories import NOW

pytestmark = pytest.mark.django_db


def _run(*args):
    out, err = StringIO(), StringIO()
    call_command(*args, stdout=out, stderr=err)
    return out.getvalue(), err.getvalue()


def test_set_material_price_prints_interval(material):
    out, _ = _run("set_material_price", str(material.id), "120000", "--effective-from", "2025-01-01T00:00:00")
    payload = json.loads(out.strip().splitlines()[-1])
    assert payload["material"] == material.id
    assert Decimal(payload["price_per_package"]) == Decimal("120000")
    assert payload["is_open"] is True
    assert MaterialPrice.objects.filter(material=material).count() == 1


def test_set_material_price_reports_failure(material):
    with pytest.raises(CommandError, match="INVALID_INPUT"):
        _run("set_material_price", str(material.id), "-1")
    with pytest.raises(CommandError, match="Invalid --effective-from"):
        _run("set_material_price", str(material.id), "10", "--effective-from", "yesterday")


def test_material_cost_command(priced_material):
    out, _ = _run("material_cost", str(priced_material.id), "60")
    payload = json.loads(out)
    assert Decimal(payload["cost"]["packages_needed"]) == 3
    assert Decimal(payload["cost"]["total_cost"]) == Decimal("300000")


def test_verify_price_ledger(priced_material):
    out, _ = _run("verify_price_ledger")
    assert "Price history consistent for 1 material(s)." in out

    # Bypass the ledger to plant a closed interval overlapping the open one
    MaterialPrice.objects.create(
        material=priced_material,
        price_per_package=Decimal("90000"),
        valid_from=NOW - timedelta(days=40),
        valid_to=NOW - timedelta(days=20),
    )
    err = StringIO()
    with pytest.raises(CommandError, match=f"inconsistent for 1 of 1 material\\(s\\): {priced_material.id}"):
        call_command("verify_price_ledger", stdout=StringIO(), stderr=err)
    assert "overlaps" in err.getvalue()


def test_verify_price_ledger_single_material(priced_material):
    out, _ = _run("verify_price_ledger", "--material", "987654")
    assert "No materials to check." in out
    out, _ = _run("verify_price_ledger", "--material", str(priced_material.id))
    assert "consistent for 1 material(s)" in out


def test_overdue_distributions(make_distribution, cultivation):
    late = make_distribution(scheduled=NOW - timedelta(days=3))
    make_distribution(scheduled=NOW + timedelta(days=5))

    out, err = _run("overdue_distributions", "--at", NOW.isoformat())
    lines = [json.loads(line) for line in out.splitlines() if line]
    assert [line["id"] for line in lines] == [late.id]
    assert lines[0]["supervisor_overdue"] is True
    assert lines[0]["farmer_overdue"] is False
    assert "1 overdue distribution(s)" in err

    out, _ = _run("overdue_distributions", "--at", NOW.isoformat(), "--group", str(cultivation.plot.group_id + 1))
    assert out == ""


def test_bootstrap_dev_seeds_settings():
    _run("bootstrap_dev")
    stored = dict(SystemSetting.objects.values_list("setting_key", "setting_value"))
    assert stored == {key: str(value) for key, value in DEFAULTS.items()}
