from .tenancy import Pharmacy
from .inventory import Medication, InventoryMovement, MovementType, ADJUSTMENT_TYPES, MEDICATION_UNITS
from .documents import Sale, Purchase, StockAdjustment

__all__ = [
    'Pharmacy',
    'Medication', 'InventoryMovement', 'MovementType', 'ADJUSTMENT_TYPES', 'MEDICATION_UNITS',
    'Sale', 'Purchase', 'StockAdjustment',
]
