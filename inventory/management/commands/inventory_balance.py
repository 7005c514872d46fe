from django.core.management.base import BaseCommand, CommandError

from inventory.services.balance import item_balances, item_movements
from masterdata.models import Item
from masterdata.services.pack import format_quantity


class Command(BaseCommand):
    help = "Show on-hand balances for an item, per warehouse and inventory state (posted movements only)"

    def add_arguments(self, parser):
        parser.add_argument("item", help="Item name")
        parser.add_argument(
            "--positive",
            action="store_true",
            help="Hide warehouses where the balance is zero or negative.",
        )
        parser.add_argument(
            "--history",
            type=int,
            default=0,
            help="Also list the N most recent movement lines.",
        )

    def handle(self, *args, **opts):
        try:
            item = Item.objects.select_related("pack_size").get(name=opts["item"])
        except Item.DoesNotExist:
            raise CommandError(f"Item '{opts['item']}' not found.")

        pack = item.pack_size
        rows = item_balances(item, positive_only=opts["positive"])
        if not rows:
            self.stdout.write(self.style.WARNING(f"No posted inventory for {item}."))
        for row in rows:
            self.stdout.write(
                f"{row['warehouse_code']}\t{row['inventory_state']}\t{format_quantity(row['qty'], pack)}"
            )

        if opts["history"]:
            self.stdout.write("")
            for line in item_movements(item, limit=opts["history"]):
                doc = line.document
                self.stdout.write(
                    f"{line.effective_date}\t{doc.doc_type}\t{doc.state}\t{line.warehouse.code}\t"
                    f"{format_quantity(line.qty_base, pack)}"
                )

        self.stdout.write(self.style.SUCCESS("Done."))
