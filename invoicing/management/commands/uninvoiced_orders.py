from django.core.management.base import BaseCommand

from documents.models import CommercialDocument
from invoicing.services.gate import uninvoiced_sales_orders


class Command(BaseCommand):
    help = "List sales orders with shipped lines that have not been invoiced."

    def handle(self, *args, **opts):
        ids = uninvoiced_sales_orders()
        if not ids:
            self.stdout.write(self.style.SUCCESS("No shipped sales orders are waiting for an invoice."))
            return

        for doc in CommercialDocument.objects.filter(pk__in=ids).order_by("order_date", "pk"):
            self.stdout.write(f"{doc.doc_no}\t{doc.order_date}\t{doc.party_ref}\t{doc.status}")

        self.stdout.write(self.style.WARNING(f"{len(ids)} sales order(s) shipped but not invoiced."))
