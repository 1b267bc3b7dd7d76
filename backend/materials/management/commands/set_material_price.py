import json
from datetime import datetime, timezone as dt_timezone

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from materials.serializers import MaterialPriceSerializer
from materials.services.price_ledger import PriceLedger


class Command(BaseCommand):
    help = "Apply a price change to a material's price ledger and print the effective interval."

    def add_arguments(self, parser):
        parser.add_argument("material_id", type=int)
        parser.add_argument("price", type=str, help="Price per package, e.g. 100000")
        parser.add_argument(
            "--effective-from",
            type=str,
            default=None,
            help="ISO-8601 instant; naive values are read as UTC. Defaults to now.",
        )

    def handle(self, *args, **opts):
        effective_from = None
        if opts["effective_from"]:
            try:
                effective_from = datetime.fromisoformat(opts["effective_from"])
            except ValueError as e:
                raise CommandError(f"Invalid --effective-from: {e}")
            if timezone.is_naive(effective_from):
                effective_from = timezone.make_aware(effective_from, dt_timezone.utc)

        result = PriceLedger().apply_price_change(opts["material_id"], opts["price"], effective_from)
        if not result.ok:
            raise CommandError(f"{result.error.value}: {result.message}")

        self.stdout.write(self.style.SUCCESS(result.message))
        self.stdout.write(json.dumps(MaterialPriceSerializer(result.value).data))
