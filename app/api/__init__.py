"""
API Blueprints Package

All HTTP route handlers for the application, organized by domain.
Each module defines a Flask Blueprint registered in app/__init__.py.

BLUEPRINT REFERENCE:
====================

Studio:
- auth_routes.py     : Login, logout, session, user management (/api/auth/*)
- projects.py        : Clients, projects, rooms and stages
- project_updates.py : Site log updates and their photos
- approvals.py       : Client approval versions per room
- ffe.py             : FFE sections, items, components, spec status
- drawings.py        : Drawing register, CAD freshness, transmittals
- reports.py         : Progress and financial reports
- dashboard.py       : Activity feed and notifications

Procurement:
- suppliers.py       : Supplier directory
- rfqs.py            : Requests for quote and sending
- supplier_quotes.py : Quote review, manual quotes, quote acceptance
- orders.py          : Purchase orders and order actions

Billing:
- invoices.py        : Client invoices, payments, PDFs

Public portals (token authenticated, no login):
- supplier_portal.py : Supplier RFQ page (/api/supplier-portal/<token>)
- client_portal.py   : Client invoices and card payments (/api/client-portal/<token>)
- order_portal.py    : Supplier purchase order page (/api/supplier-order/<token>)
"""

# All blueprints are imported and registered in app/__init__.py
# This file serves as documentation only

__all__ = []
