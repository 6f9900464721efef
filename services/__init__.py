"""
Services package for StudioFlow.
Repositories and workflow services over the database models.
"""

from services.users_repository import UsersRepository
from services.projects_repository import ProjectsRepository
from services.approvals_repository import ApprovalsRepository
from services.ffe_repository import FFERepository
from services.suppliers_repository import SuppliersRepository
from services.rfq_repository import RFQRepository, SupplierPortalService
from services.supplier_quote_service import SupplierQuoteService
from services.client_invoice_repository import ClientInvoiceRepository
from services.payment_service import ClientPortalService
from services.order_repository import OrderRepository, SupplierOrderPortalService
from services.drawing_repository import DrawingRepository
from services.report_service import ReportService

__all__ = [
    'UsersRepository',
    'ProjectsRepository',
    'ApprovalsRepository',
    'FFERepository',
    'SuppliersRepository',
    'RFQRepository',
    'SupplierPortalService',
    'SupplierQuoteService',
    'ClientInvoiceRepository',
    'ClientPortalService',
    'OrderRepository',
    'SupplierOrderPortalService',
    'DrawingRepository',
    'ReportService'
]
