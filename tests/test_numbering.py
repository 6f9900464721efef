"""
Tests for sequential document numbers
"""
import pytest
from database.models import Order, Transmittal
from services.numbering import next_transmittal_number, next_yearly_number


@pytest.mark.unit
class TestYearlyNumbers:
    """Tests for PREFIX-YEAR-0001 numbers"""

    def test_first_number(self, db_session, org):
        """Test that numbering starts at 0001"""
        assert next_yearly_number(db_session, Order.order_number, 'PO', Order.organization_id,
                                  org.id, year=2025) == 'PO-2025-0001'

    def test_follows_highest_existing(self, db_session, org, project_setup):
        """Test that the next number follows the highest, not the count"""
        for number in ('PO-2025-0001', 'PO-2025-0007', 'PO-2024-0042', 'PO-2025-draft'):
            db_session.add(Order(organization_id=org.id, project_id=project_setup['project_id'],
                                 order_number=number, vendor_name='Maison Home'))
        db_session.commit()
        assert next_yearly_number(db_session, Order.order_number, 'PO', Order.organization_id,
                                  org.id, year=2025) == 'PO-2025-0008'
        assert next_yearly_number(db_session, Order.order_number, 'PO', Order.organization_id,
                                  org.id, year=2024) == 'PO-2024-0043'

    def test_counts_within_organization(self, db_session, org, project_setup):
        """Test that another organization's numbers are ignored"""
        db_session.add(Order(organization_id=org.id, project_id=project_setup['project_id'],
                             order_number='PO-2025-0003', vendor_name='Maison Home'))
        db_session.commit()
        assert next_yearly_number(db_session, Order.order_number, 'PO', Order.organization_id,
                                  'another-org', year=2025) == 'PO-2025-0001'


@pytest.mark.unit
class TestTransmittalNumbers:
    """Tests for per-project T-001 numbers"""

    def test_per_project_sequence(self, db_session, project_setup):
        """Test that transmittal numbers count within the project"""
        project_id = project_setup['project_id']
        assert next_transmittal_number(db_session, Transmittal.transmittal_number,
                                       Transmittal.project_id, project_id) == 'T-001'
        db_session.add(Transmittal(project_id=project_id, transmittal_number='T-009',
                                   recipient_name='Bob'))
        db_session.commit()
        assert next_transmittal_number(db_session, Transmittal.transmittal_number,
                                       Transmittal.project_id, project_id) == 'T-010'
        assert next_transmittal_number(db_session, Transmittal.transmittal_number,
                                       Transmittal.project_id, 'other-project') == 'T-001'
