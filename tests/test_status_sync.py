"""
Tests for procurement status synchronization
"""
import pytest
from database.models import FFEItem
from services.errors import NotFoundError
from services.status_sync import (
    StatusSyncService, is_status_ahead, is_ordered_or_later, PROCUREMENT_STATUS_ORDER
)
from validators import ValidationError


@pytest.fixture
def sync(db_session, org, owner):
    return StatusSyncService(db_session, org.id, owner.id)


@pytest.mark.unit
class TestStatusOrder:
    """Tests for workflow ordering helpers"""

    def test_status_ahead(self):
        """Test that later workflow statuses are ahead of earlier ones"""
        assert is_status_ahead('ORDERED', 'RFQ_SENT') is True
        assert is_status_ahead('RFQ_SENT', 'ORDERED') is False
        assert is_status_ahead('ORDERED', 'ORDERED') is False

    def test_manual_status_never_ahead(self):
        """Test that statuses outside the workflow compare as not ahead"""
        assert is_status_ahead('ISSUE', 'DRAFT') is False
        assert is_status_ahead('ORDERED', 'HIDDEN') is False

    def test_ordered_or_later(self):
        """Test the ORDERED threshold"""
        assert is_ordered_or_later('ORDERED') is True
        assert is_ordered_or_later('CLOSED') is True
        assert is_ordered_or_later('CLIENT_PAID') is False
        assert is_ordered_or_later('ARCHIVED') is False

    def test_workflow_starts_at_draft_and_ends_closed(self):
        """Test the ends of the workflow"""
        assert PROCUREMENT_STATUS_ORDER[0] == 'DRAFT'
        assert PROCUREMENT_STATUS_ORDER[-1] == 'CLOSED'


@pytest.mark.unit
class TestSyncItemStatus:
    """Tests for trigger-driven status moves"""

    def test_trigger_moves_item_forward(self, sync, project_setup, db_session):
        """Test that rfq_sent moves a DRAFT item to RFQ_SENT and logs it"""
        result = sync.sync_item_status(project_setup['sofa_id'], 'rfq_sent')
        db_session.commit()

        assert result == {
            'item_id': project_setup['sofa_id'],
            'previous_status': 'DRAFT',
            'new_status': 'RFQ_SENT',
            'changed': True,
            'reason': None
        }
        item = db_session.get(FFEItem, project_setup['sofa_id'])
        assert item.spec_status == 'RFQ_SENT'
        assert any(a.activity_type == 'STATUS_CHANGED' for a in item.activities)

    def test_status_never_moves_backwards(self, sync, project_setup, db_session):
        """Test that an earlier trigger leaves a later status alone"""
        sync.sync_item_status(project_setup['sofa_id'], 'order_created')
        db_session.commit()
        result = sync.sync_item_status(project_setup['sofa_id'], 'quote_received')

        assert result['changed'] is False
        assert 'not ahead' in result['reason']
        assert db_session.get(FFEItem, project_setup['sofa_id']).spec_status == 'ORDERED'

    def test_manual_status_is_kept(self, sync, project_setup, db_session):
        """Test that triggers do not overwrite manual statuses"""
        sync.set_spec_status(project_setup['sofa_id'], 'CLIENT_TO_ORDER')
        db_session.commit()
        result = sync.sync_item_status(project_setup['sofa_id'], 'order_shipped')

        assert result['changed'] is False
        assert result['previous_status'] == 'CLIENT_TO_ORDER'
        assert 'manual status' in result['reason']

    def test_unknown_trigger(self, sync, project_setup):
        """Test that unknown triggers change nothing"""
        result = sync.sync_item_status(project_setup['sofa_id'], 'teleported')
        assert result['changed'] is False
        assert result['reason'] == 'Unknown trigger'

    def test_missing_item_reported(self, sync):
        """Test that a missing item is reported rather than raised"""
        result = sync.sync_item_status('missing', 'rfq_sent')
        assert result['changed'] is False
        assert result['reason'] == 'Item not found'

    def test_bulk_sync_skips_blank_ids(self, sync, project_setup):
        """Test that empty ids are ignored in a bulk sync"""
        results = sync.sync_items_status(
            [project_setup['sofa_id'], None, project_setup['chair_id']], 'quote_received'
        )
        assert len(results) == 2
        assert all(r['changed'] for r in results)


@pytest.mark.unit
class TestManualStatus:
    """Tests for manual status and payment status updates"""

    def test_manual_status_can_move_backwards(self, sync, project_setup, db_session):
        """Test that a person may set any valid status"""
        sync.sync_item_status(project_setup['sofa_id'], 'order_created')
        db_session.commit()
        assert sync.set_spec_status(project_setup['sofa_id'], 'SELECTED')['spec_status'] == 'SELECTED'

    def test_invalid_manual_status(self, sync, project_setup):
        """Test that unknown statuses fail"""
        with pytest.raises(ValidationError) as exc_info:
            sync.set_spec_status(project_setup['sofa_id'], 'LOST')
        assert exc_info.value.field == 'spec_status'

    def test_item_from_other_org_not_found(self, db_session, project_setup):
        """Test that the organization scope applies"""
        with pytest.raises(NotFoundError):
            StatusSyncService(db_session, 'another-org').set_spec_status(project_setup['sofa_id'], 'ISSUE')

    def test_payment_status_stamps_paid_at(self, sync, project_setup, db_session):
        """Test that a paid status sets paid_at and amount"""
        sync.update_item_payment_status(project_setup['sofa_id'], 'FULLY_PAID', 1250.0)
        item = db_session.get(FFEItem, project_setup['sofa_id'])
        assert item.payment_status == 'FULLY_PAID'
        assert item.paid_at is not None
        assert item.paid_amount == 1250.0

        sync.update_item_payment_status(project_setup['sofa_id'], 'INVOICED')
        assert item.paid_at is None

    def test_invalid_payment_status(self, sync, project_setup):
        """Test that unknown payment statuses fail"""
        with pytest.raises(ValidationError):
            sync.update_item_payment_status(project_setup['sofa_id'], 'HALF_PAID')

    def test_item_without_quotes(self, sync, project_setup):
        """Test that an item with no quote lines has no comparison rows"""
        assert sync.get_item_quotes(project_setup['sofa_id']) == []
