from .counters import Counter
from .orders import Buyer, Product, Order, OrderLine, OrderLineSize
from .purchasing import Purchase, PurchaseProduct, PurchaseItem, PurchaseReturn, PurchaseReturnItem
from .production import Production, ProductionStageEvent
from .store import StoreEntry, StoreEntryItem, StoreLog, StoreLogItem
from .billing import Document, DocumentLine, DocumentPayment, Note, NoteLine

__all__ = [
    'Counter',
    'Buyer', 'Product', 'Order', 'OrderLine', 'OrderLineSize',
    'Purchase', 'PurchaseProduct', 'PurchaseItem', 'PurchaseReturn', 'PurchaseReturnItem',
    'Production', 'ProductionStageEvent',
    'StoreEntry', 'StoreEntryItem', 'StoreLog', 'StoreLogItem',
    'Document', 'DocumentLine', 'DocumentPayment', 'Note', 'NoteLine',
]
