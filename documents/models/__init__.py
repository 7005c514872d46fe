from .commercial import InventoryState, CommercialDocument, CommercialLine
from .proxies import (
    SalesOrder, PurchaseOrder, TransferOrder,
    SalesOrderLine, PurchaseOrderLine, TransferOrderLine,
)
