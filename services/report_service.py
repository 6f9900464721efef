"""
Project reports: phase progress across rooms and the project's money trail.
"""

import logging
from collections import Counter
from typing import Dict, List
from sqlalchemy.orm import Session

from database.models import Project, FFEItem, ClientQuote, Order
from services.client_invoice_repository import paid_amount, round_money
from services.errors import NotFoundError
from services.status_sync import is_ordered_or_later

logger = logging.getLogger(__name__)

REPORT_PHASES = ['DESIGN_CONCEPT', 'THREE_D', 'DRAWINGS', 'FFE']


def _empty_phase() -> Dict:
    return {
        'completed': 0,
        'in_progress': 0,
        'pending': 0,
        'not_applicable': 0,
        'total': 0,
        'percentage': 0,
        'rooms': []
    }


def is_item_done(item: FFEItem) -> bool:
    return item.state == 'COMPLETED' or is_ordered_or_later(item.spec_status)


def _percent(part, whole) -> int:
    return int(round(part * 100.0 / whole)) if whole else 0


class ReportService:
    """Read-only project reports."""

    def __init__(self, session: Session, organization_id: str):
        self.session = session
        self.organization_id = organization_id

    def _get_project(self, project_id: str) -> Project:
        project = self.session.query(Project).filter(
            Project.id == project_id,
            Project.organization_id == self.organization_id
        ).first()
        if not project:
            raise NotFoundError('Project not found')
        return project

    def _visible_items(self, project_id: str) -> List[FFEItem]:
        return self.session.query(FFEItem).filter(
            FFEItem.project_id == project_id,
            FFEItem.visibility == 'VISIBLE'
        ).all()

    # =========================================================================
    # PROGRESS
    # =========================================================================

    def project_progress(self, project_id: str) -> Dict:
        """
        Per-phase stage counts and completion for a project.

        FFE stages are judged by their room's visible items rather than the
        stage status. CLIENT_APPROVAL stages are not reported.
        """
        project = self._get_project(project_id)
        items_by_room = {}
        for item in self._visible_items(project.id):
            items_by_room.setdefault(item.room_id, []).append(item)

        phases = {name: _empty_phase() for name in REPORT_PHASES}
        phases['FFE'].update({'items_total': 0, 'items_completed': 0,
                              'rooms_with_items': 0, 'rooms_empty': 0})
        total_stages = 0
        completed_stages = 0

        for room in project.rooms:
            for stage in room.stages:
                phase = phases.get(stage.stage_type)
                if phase is None:
                    continue
                phase['total'] += 1
                total_stages += 1

                if stage.stage_type == 'FFE':
                    items = items_by_room.get(room.id, [])
                    done = len([i for i in items if is_item_done(i)])
                    phase['items_total'] += len(items)
                    phase['items_completed'] += done
                    if items:
                        phase['rooms_with_items'] += 1
                        room_status = 'completed' if done == len(items) else 'in_progress'
                    elif stage.status == 'NOT_APPLICABLE':
                        room_status = 'not_applicable'
                    else:
                        phase['rooms_empty'] += 1
                        room_status = 'pending'
                else:
                    room_status = {
                        'COMPLETED': 'completed',
                        'IN_PROGRESS': 'in_progress',
                        'NOT_APPLICABLE': 'not_applicable',
                    }.get(stage.status, 'pending')

                phase[room_status] += 1
                if room_status == 'completed':
                    completed_stages += 1
                phase['rooms'].append({
                    'room_id': room.id,
                    'room_name': room.display_name,
                    'room_type': room.room_type,
                    'stage_id': stage.id,
                    'stage_status': stage.status,
                    'status': room_status
                })

        for name, phase in phases.items():
            if not phase['total']:
                continue
            if name == 'FFE' and phase['items_total']:
                phase['percentage'] = _percent(phase['items_completed'], phase['items_total'])
            else:
                phase['percentage'] = _percent(phase['completed'], phase['total'] - phase['not_applicable'])

        applicable = total_stages - sum(p['not_applicable'] for p in phases.values())
        return {
            'id': project.id,
            'name': project.name,
            'client_name': project.client.name if project.client else None,
            'status': project.status,
            'overall_completion': _percent(completed_stages, applicable),
            'phases': phases,
            'room_count': len(project.rooms),
            'updated_at': project.updated_at.isoformat() if project.updated_at else None
        }

    def projects_overview(self) -> List[Dict]:
        """Overall completion of every active project in the organization."""
        projects = self.session.query(Project).filter(
            Project.organization_id == self.organization_id,
            Project.status.notin_(('CANCELLED',))
        ).order_by(Project.name).all()
        overview = []
        for project in projects:
            progress = self.project_progress(project.id)
            overview.append({
                'id': project.id,
                'name': project.name,
                'client_name': progress['client_name'],
                'status': project.status,
                'overall_completion': progress['overall_completion'],
                'room_count': progress['room_count']
            })
        return overview

    # =========================================================================
    # FINANCIALS
    # =========================================================================

    def project_financials(self, project_id: str) -> Dict:
        """Client billing against supplier spend for one project."""
        project = self._get_project(project_id)

        invoices = self.session.query(ClientQuote).filter(
            ClientQuote.project_id == project.id,
            ClientQuote.status != 'DRAFT',
            ClientQuote.status != 'CANCELLED'
        ).all()
        invoiced = round_money(sum(i.total_amount or 0 for i in invoices))
        invoiced_subtotal = round_money(sum(i.subtotal or 0 for i in invoices))
        paid = round_money(sum(paid_amount(i) for i in invoices))

        orders = self.session.query(Order).filter(
            Order.project_id == project.id,
            Order.status != 'CANCELLED'
        ).all()
        ordered_total = round_money(sum(o.total_amount or 0 for o in orders))
        ordered_subtotal = round_money(sum(o.subtotal or 0 for o in orders))
        paid_to_suppliers = round_money(sum(o.supplier_payment_amount or 0 for o in orders))

        items = self._visible_items(project.id)
        margin = round_money(invoiced_subtotal - ordered_subtotal)
        logger.debug(f"Built financial summary for project {project.id}")
        return {
            'project_id': project.id,
            'client': {
                'invoiced': invoiced,
                'paid': paid,
                'outstanding': round_money(invoiced - paid),
                'invoice_count': len(invoices)
            },
            'suppliers': {
                'ordered': ordered_total,
                'paid': paid_to_suppliers,
                'outstanding': round_money(ordered_total - paid_to_suppliers),
                'order_count': len(orders)
            },
            'gross_margin': margin,
            'gross_margin_percent': _percent(margin, invoiced_subtotal),
            'items_by_status': dict(Counter(item.spec_status or 'DRAFT' for item in items)),
            'item_count': len(items)
        }
