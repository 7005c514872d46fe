from .item import PackSize, Item
from .warehouse import Warehouse, Terms
