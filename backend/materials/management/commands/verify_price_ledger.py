from django.core.management.base import BaseCommand, CommandError

from materials.models import Material
from materials.services.price_ledger import find_ledger_violations


class Command(BaseCommand):
    help = (
        "Check every material's price history: intervals must not overlap, at most one may be open "
        "and it must be the latest. Exits non-zero when any material is inconsistent."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--material",
            type=int,
            action="append",
            dest="material_ids",
            help="Only check this material id (repeatable).",
        )

    def handle(self, *args, **opts):
        materials = Material.objects.order_by("id").prefetch_related("prices")
        if opts["material_ids"]:
            materials = materials.filter(id__in=opts["material_ids"])

        checked = 0
        inconsistent = {}
        for material in materials:
            checked += 1
            problems = find_ledger_violations(list(material.prices.all()))
            if problems:
                inconsistent[material.id] = problems
                for problem in problems:
                    self.stderr.write(f"material {material.id} ({material.name}): {problem}")

        if not checked:
            self.stdout.write(self.style.WARNING("No materials to check."))
            return
        if inconsistent:
            raise CommandError(
                f"Price history inconsistent for {len(inconsistent)} of {checked} material(s): "
                + ", ".join(str(pk) for pk in inconsistent)
            )
        self.stdout.write(self.style.SUCCESS(f"Price history consistent for {checked} material(s)."))
