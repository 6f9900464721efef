"""
Database package for StudioFlow.
Provides SQLAlchemy models, connection management, and session handling.
"""

from database.connection import (
    Base,
    configure_engine,
    get_db_session,
    init_db,
    check_db_connection
)

from database.models import (
    Organization,
    User,
    Client,
    Project,
    Room,
    Stage,
    ClientApprovalVersion,
    FFESection,
    FFEItem,
    ItemComponent,
    ItemActivity,
    Supplier,
    RFQ,
    RFQLineItem,
    SupplierRFQ,
    SupplierAccessLog,
    SupplierQuote,
    SupplierQuoteLineItem,
    ClientQuote,
    ClientQuoteLineItem,
    ClientAccessToken,
    Payment,
    Order,
    OrderItem,
    Delivery,
    Drawing,
    DrawingRevision,
    Transmittal,
    TransmittalItem,
    EventLog,
    Notification
)

__all__ = [
    # Connection
    'Base',
    'configure_engine',
    'get_db_session',
    'init_db',
    'check_db_connection',
    # Models
    'Organization',
    'User',
    'Client',
    'Project',
    'Room',
    'Stage',
    'ClientApprovalVersion',
    'FFESection',
    'FFEItem',
    'ItemComponent',
    'ItemActivity',
    'Supplier',
    'RFQ',
    'RFQLineItem',
    'SupplierRFQ',
    'SupplierAccessLog',
    'SupplierQuote',
    'SupplierQuoteLineItem',
    'ClientQuote',
    'ClientQuoteLineItem',
    'ClientAccessToken',
    'Payment',
    'Order',
    'OrderItem',
    'Delivery',
    'Drawing',
    'DrawingRevision',
    'Transmittal',
    'TransmittalItem',
    'EventLog',
    'Notification'
]
