import json

from django.core.management.base import BaseCommand, CommandError

from materials.serializers import MaterialCostLineSerializer
from materials.services.costing import MaterialCostService


class Command(BaseCommand):
    help = "Print the packaged cost of a quantity of one material at today's price."

    def add_arguments(self, parser):
        parser.add_argument("material_id", type=int)
        parser.add_argument("quantity", type=str)

    def handle(self, *args, **opts):
        result = MaterialCostService().calculate_material_cost(opts["material_id"], opts["quantity"])
        if not result.ok:
            raise CommandError(f"{result.error.value}: {result.message}")
        self.stdout.write(json.dumps(MaterialCostLineSerializer(result.value).data))
