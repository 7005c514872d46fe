import datetime
from decimal import Decimal

import pytest

from documents.models import PurchaseOrder, SalesOrder, TransferOrder
from masterdata.models import Item, PackSize, Terms, Warehouse

TODAY = datetime.date(2024, 3, 1)


@pytest.fixture
def warehouse(db):
    return Warehouse.objects.create(code="MAIN", name="Main warehouse")


@pytest.fixture
def east(db):
    return Warehouse.objects.create(code="EAST", name="East warehouse")


@pytest.fixture
def bag(db):
    return PackSize.objects.create(
        pack_size="10LB BAG",
        uom_per_each=Decimal("10"),
        units_of_units="LB",
        package_type="Bag",
        eaches_per_pallet=Decimal("50"),
        eaches_per_tl=Decimal("1000"),
    )


@pytest.fixture
def item(bag):
    return Item.objects.create(name="FLOUR-10", product_name="Flour", pack_size=bag)


@pytest.fixture
def widget(db):
    return Item.objects.create(name="WIDGET", product_name="Widget")


@pytest.fixture
def net30(db):
    return Terms.objects.create(name="Net 30", description="Payment within 30 days")


@pytest.fixture
def sales_order(warehouse, net30):
    return SalesOrder.objects.create(order_date=TODAY, primary_warehouse=warehouse, party_ref="CUST-1", terms=net30)


@pytest.fixture
def so_line(sales_order, item):
    line, _ = sales_order.add_line(item, qty_ordered=Decimal("10"))
    return line


@pytest.fixture
def purchase_order(warehouse):
    return PurchaseOrder.objects.create(order_date=TODAY, primary_warehouse=warehouse, party_ref="VEND-1")


@pytest.fixture
def po_line(purchase_order, item):
    line, _ = purchase_order.add_line(item, qty_ordered=Decimal("10"))
    return line


@pytest.fixture
def transfer_order(warehouse, east):
    return TransferOrder.objects.create(order_date=TODAY, primary_warehouse=warehouse, secondary_warehouse=east)


@pytest.fixture
def to_line(transfer_order, item):
    line, _ = transfer_order.add_line(item, qty_ordered=Decimal("5"))
    return line
