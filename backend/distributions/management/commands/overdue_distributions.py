import json
from datetime import datetime, timezone as dt_timezone

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from distributions.models import FINAL_STATUSES, MaterialDistribution
from distributions.overdue import overdue_flags


class Command(BaseCommand):
    help = "List open material distributions that are overdue, one JSON object per line."

    def add_arguments(self, parser):
        parser.add_argument("--group", type=int, default=None, help="Only distributions of this farm group.")
        parser.add_argument(
            "--at",
            type=str,
            default=None,
            help="ISO-8601 instant to evaluate at; naive values are read as UTC. Defaults to now.",
        )

    def handle(self, *args, **opts):
        now = timezone.now()
        if opts["at"]:
            try:
                now = datetime.fromisoformat(opts["at"])
            except ValueError as e:
                raise CommandError(f"Invalid --at: {e}")
            if timezone.is_naive(now):
                now = timezone.make_aware(now, dt_timezone.utc)

        qs = (
            MaterialDistribution.objects
            .exclude(status__in=FINAL_STATUSES)
            .select_related("plot_cultivation__plot", "material")
            .order_by("id")
        )
        if opts["group"] is not None:
            qs = qs.filter(plot_cultivation__plot__group_id=opts["group"])

        count = 0
        for record in qs:
            flags = overdue_flags(record, now)
            if not flags.any:
                continue
            count += 1
            self.stdout.write(json.dumps({
                "id": record.id,
                "plot_cultivation_id": record.plot_cultivation_id,
                "farmer_id": record.plot_cultivation.plot.farmer_id,
                "material": record.material.name,
                "status": record.status,
                "supervisor_overdue": flags.supervisor,
                "farmer_overdue": flags.farmer,
                "distribution_overdue": flags.distribution,
            }))
        self.stderr.write(f"{count} overdue distribution(s) at {now.isoformat()}")
