from django.db import models

from core.managers import DocTypeManager, DocTypeProxyMixin
from documents.models.commercial import CommercialDocument, CommercialLine


class DocTypeLineManager(models.Manager):
    def get_queryset(self):
        return super().get_queryset().filter(document__doc_type=self.model.DOC_TYPE)


class SalesOrder(DocTypeProxyMixin, CommercialDocument):
    DOC_TYPE = CommercialDocument.DocType.SO
    objects = DocTypeManager()

    class Meta:
        proxy = True
        verbose_name = "Sales Order"
        verbose_name_plural = "Sales Orders"

class PurchaseOrder(DocTypeProxyMixin, CommercialDocument):
    DOC_TYPE = CommercialDocument.DocType.PO
    objects = DocTypeManager()

    class Meta:
        proxy = True
        verbose_name = "Purchase Order"
        verbose_name_plural = "Purchase Orders"

class TransferOrder(DocTypeProxyMixin, CommercialDocument):
    DOC_TYPE = CommercialDocument.DocType.TO
    objects = DocTypeManager()

    class Meta:
        proxy = True
        verbose_name = "Transfer Order"
        verbose_name_plural = "Transfer Orders"


class SalesOrderLine(CommercialLine):
    DOC_TYPE = CommercialDocument.DocType.SO
    objects = DocTypeLineManager()

    class Meta:
        proxy = True

class PurchaseOrderLine(CommercialLine):
    DOC_TYPE = CommercialDocument.DocType.PO
    objects = DocTypeLineManager()

    class Meta:
        proxy = True

class TransferOrderLine(CommercialLine):
    DOC_TYPE = CommercialDocument.DocType.TO
    objects = DocTypeLineManager()

    class Meta:
        proxy = True
