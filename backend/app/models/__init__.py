from .tenancy import Tenant, User
from .catalog import Product, Service, Customer, Supplier, Quote
from .finance import Category, FinancialAccount, CardMachine, CardMachineRate, Transaction
from .sales import Sale, SaleItem
from .agenda import AgendaEvent
from .notifications import Notification
from .purchasing import PurchaseInvoice, StockEntry

__all__ = [
    'Tenant', 'User',
    'Product', 'Service', 'Customer', 'Supplier', 'Quote',
    'Category', 'FinancialAccount', 'CardMachine', 'CardMachineRate', 'Transaction',
    'Sale', 'SaleItem',
    'AgendaEvent',
    'Notification',
    'PurchaseInvoice', 'StockEntry',
]
