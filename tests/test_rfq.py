"""
Tests for RFQs and the supplier portal
"""
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from database.models import FFEItem, Notification, SupplierAccessLog, SupplierRFQ
from services.errors import NotFoundError, TokenExpiredError
from services.rfq_repository import RFQRepository, SupplierPortalService
from validators import ValidationError


@pytest.fixture
def rfqs(db_session, org, owner):
    return RFQRepository(db_session, org.id, owner.id)


@pytest.fixture
def sent_rfq(rfqs, project_setup, supplier, db_session):
    """RFQ for the sofa and armchair sent to the supplier; returns (rfq, token)"""
    rfq = rfqs.create_from_items(project_setup['project_id'], {
        'title': 'Living room seating',
        'item_ids': [project_setup['sofa_id'], project_setup['chair_id']]
    })
    db_session.commit()
    rfqs.send_rfq(rfq['id'], supplier_ids=[supplier['id']])
    db_session.commit()
    token = db_session.query(SupplierRFQ).filter(SupplierRFQ.rfq_id == rfq['id']).one().access_token
    return rfqs.get_rfq(rfq['id']), token


@pytest.mark.unit
class TestCreateRFQ:
    """Tests for building RFQs from FFE items"""

    def test_lines_copy_item_details(self, rfqs, project_setup):
        """Test that line items carry name, quantity and trade price"""
        rfq = rfqs.create_from_items(project_setup['project_id'], {
            'title': 'Seating',
            'item_ids': [project_setup['sofa_id']]
        })
        year = datetime.utcnow().year
        assert rfq['rfq_number'] == f"RFQ-{year}-0001"
        assert rfq['status'] == 'DRAFT'
        line = rfq['line_items'][0]
        assert line['item_name'] == 'Sofa'
        assert line['quantity'] == 1
        assert line['target_unit_price'] == 1000
        assert line['specifications'] == {'brand': 'Maison', 'sku': None}

    def test_numbers_increment(self, rfqs, project_setup, db_session):
        """Test that the second RFQ of the year gets 0002"""
        rfqs.create_from_items(project_setup['project_id'], {
            'title': 'One', 'item_ids': [project_setup['sofa_id']]
        })
        db_session.commit()
        second = rfqs.create_from_items(project_setup['project_id'], {
            'title': 'Two', 'item_ids': [project_setup['chair_id']]
        })
        assert second['rfq_number'].endswith('-0002')

    def test_title_and_items_required(self, rfqs, project_setup):
        """Test that title and item ids are required"""
        with pytest.raises(ValidationError):
            rfqs.create_from_items(project_setup['project_id'], {'item_ids': [project_setup['sofa_id']]})
        with pytest.raises(ValidationError):
            rfqs.create_from_items(project_setup['project_id'], {'title': 'Empty'})

    def test_foreign_item_rejected(self, rfqs, project_setup):
        """Test that items outside the project fail"""
        with pytest.raises(NotFoundError):
            rfqs.create_from_items(project_setup['project_id'], {
                'title': 'Seating', 'item_ids': [project_setup['sofa_id'], 'missing']
            })


@pytest.mark.unit
class TestSendRFQ:
    """Tests for sending RFQs"""

    def test_send_marks_rfq_and_items(self, sent_rfq, project_setup, db_session):
        """Test that sending moves the RFQ to SENT and the items to RFQ_SENT"""
        rfq, token = sent_rfq
        assert rfq['status'] == 'SENT'
        assert rfq['sent_at'] is not None
        assert rfq['suppliers'][0]['response_status'] == 'PENDING'
        assert rfq['suppliers'][0]['token_expires_at'] is not None
        assert db_session.get(FFEItem, project_setup['sofa_id']).spec_status == 'RFQ_SENT'

    def test_send_without_smtp_still_succeeds(self, rfqs, project_setup, supplier, db_session):
        """Test that a recipient succeeds when email is switched off"""
        rfq = rfqs.create_from_items(project_setup['project_id'], {
            'title': 'Seating', 'item_ids': [project_setup['sofa_id']]
        })
        db_session.commit()
        result = rfqs.send_rfq(rfq['id'], supplier_ids=[supplier['id']])

        assert result['success'] is True
        assert result['sent'] == 1
        assert result['results'][0]['email_delivered'] is False
        assert '/supplier-portal/' in result['results'][0]['portal_url']

    def test_recipients_fail_independently(self, rfqs, project_setup, supplier, db_session):
        """Test that one bad recipient does not stop the others"""
        rfq = rfqs.create_from_items(project_setup['project_id'], {
            'title': 'Seating', 'item_ids': [project_setup['sofa_id']]
        })
        db_session.commit()
        result = rfqs.send_rfq(
            rfq['id'],
            supplier_ids=[supplier['id'], 'missing'],
            one_time_vendors=[{'name': 'Atelier B', 'email': 'quotes@atelierb.example.com'}, {'name': 'No Email'}]
        )
        assert result['sent'] == 2
        assert result['failed'] == 2
        errors = [r['error'] for r in result['results'] if not r['success']]
        assert errors == ['Supplier not found or inactive', 'Vendor email is required']

    def test_no_recipients_rejected(self, rfqs, project_setup, db_session):
        """Test that at least one recipient is required"""
        rfq = rfqs.create_from_items(project_setup['project_id'], {
            'title': 'Seating', 'item_ids': [project_setup['sofa_id']]
        })
        db_session.commit()
        with pytest.raises(ValidationError):
            rfqs.send_rfq(rfq['id'])

    def test_cancel(self, rfqs, sent_rfq):
        """Test that an RFQ can be cancelled"""
        rfq, _ = sent_rfq
        assert rfqs.cancel_rfq(rfq['id'])['status'] == 'CANCELLED'


@pytest.mark.unit
class TestSupplierPortal:
    """Tests for the token-based supplier portal"""

    def test_first_view_marks_viewed(self, sent_rfq, db_session):
        """Test that viewing records the visit and sets VIEWED"""
        rfq, token = sent_rfq
        view = SupplierPortalService(db_session, '10.0.0.5', 'pytest').view(token)
        db_session.commit()

        assert view['response_status'] == 'VIEWED'
        assert view['rfq']['title'] == 'Living room seating'
        assert view['rfq']['project']['client'] == {'name': 'Alice Martin'}
        assert len(view['rfq']['line_items']) == 2
        assert view['existing_quote'] is None

        actions = [log.action for log in db_session.query(SupplierAccessLog).all()]
        assert 'VIEW' in actions
        assert 'EMAIL_SENT' in actions

    def test_unknown_token(self, db_session, org):
        """Test that an unknown token is not found"""
        with pytest.raises(NotFoundError):
            SupplierPortalService(db_session).view('not-a-token')

    def test_expired_token(self, sent_rfq, db_session):
        """Test that expired tokens raise a 410 error"""
        _, token = sent_rfq
        supplier_rfq = db_session.query(SupplierRFQ).filter(SupplierRFQ.access_token == token).one()
        supplier_rfq.token_expires_at = datetime.utcnow() - timedelta(days=1)
        db_session.commit()

        with pytest.raises(TokenExpiredError) as exc_info:
            SupplierPortalService(db_session).view(token)
        assert exc_info.value.status_code == 410

    def test_decline(self, sent_rfq, db_session):
        """Test that a supplier can decline with a reason"""
        _, token = sent_rfq
        result = SupplierPortalService(db_session).decline(token, 'Discontinued')
        db_session.commit()
        assert result == {'success': True, 'action': 'declined'}

        supplier_rfq = db_session.query(SupplierRFQ).filter(SupplierRFQ.access_token == token).one()
        assert supplier_rfq.response_status == 'DECLINED'
        assert supplier_rfq.decline_reason == 'Discontinued'

    def test_submit_quote_updates_items(self, sent_rfq, project_setup, db_session):
        """Test that a quote prices the items and moves them to QUOTE_RECEIVED"""
        rfq, token = sent_rfq
        lines = rfq['line_items']
        result = SupplierPortalService(db_session).submit_quote(token, {
            'lead_time': '6 weeks',
            'line_items': [
                {'rfq_line_item_id': lines[0]['id'], 'unit_price': 900},
                {'rfq_line_item_id': lines[1]['id'], 'unit_price': '350.50', 'lead_time': '2 weeks'}
            ]
        })
        db_session.commit()

        quote = result['quote']
        assert quote['version'] == 1
        assert quote['subtotal'] == 1250.5
        assert quote['total_amount'] == 1250.5
        assert result['rfq_status'] == 'FULLY_QUOTED'

        sofa = db_session.get(FFEItem, project_setup['sofa_id'])
        chair = db_session.get(FFEItem, project_setup['chair_id'])
        assert (sofa.trade_price, sofa.lead_time, sofa.spec_status) == (900, '6 weeks', 'QUOTE_RECEIVED')
        assert (chair.trade_price, chair.lead_time) == (350.5, '2 weeks')

        notifications = db_session.query(Notification).all()
        assert [n.title for n in notifications] == ['Quote received']

    def test_resubmission_is_next_version(self, sent_rfq, db_session):
        """Test that a second quote becomes version 2 and supersedes the first line"""
        rfq, token = sent_rfq
        line_id = rfq['line_items'][0]['id']
        portal = SupplierPortalService(db_session)
        portal.submit_quote(token, {'line_items': [{'rfq_line_item_id': line_id, 'unit_price': 900}]})
        db_session.commit()
        second = portal.submit_quote(token, {'line_items': [{'rfq_line_item_id': line_id, 'unit_price': 850}]})
        db_session.commit()

        assert second['quote']['version'] == 2
        view = portal.view(token)
        assert [q['version'] for q in view['previous_quotes']] == [2, 1]

    def test_quote_requires_lines(self, sent_rfq, db_session):
        """Test that an empty quote fails"""
        _, token = sent_rfq
        with pytest.raises(ValidationError):
            SupplierPortalService(db_session).submit_quote(token, {'line_items': []})


@pytest.mark.integration
class TestRFQEndpoints:
    """Integration tests for RFQ and supplier portal routes"""

    def test_create_and_send_over_api(self, auth_client, project_setup, supplier):
        """Test creating and sending an RFQ through the API"""
        created = auth_client.post(f"/api/projects/{project_setup['project_id']}/rfqs", json={
            'title': 'Seating', 'item_ids': [project_setup['sofa_id']]
        })
        assert created.status_code == 201
        rfq_id = created.get_json()['rfq']['id']

        sent = auth_client.post(f'/api/rfqs/{rfq_id}/send', json={'supplier_ids': [supplier['id']]})
        assert sent.status_code == 200
        assert sent.get_json()['sent'] == 1
        listing = auth_client.get('/api/rfqs').get_json()['rfqs']
        assert listing[0]['status'] == 'SENT'

    def test_portal_needs_no_login(self, client, sent_rfq):
        """Test that the supplier portal works without a session"""
        _, token = sent_rfq
        response = client.get(f'/api/supplier-portal/{token}')
        assert response.status_code == 200
        assert response.get_json()['supplier']['name'] == 'Maison Home'

    def test_expired_portal_link_returns_410(self, client, sent_rfq, db_session):
        """Test that an expired link returns 410"""
        _, token = sent_rfq
        supplier_rfq = db_session.query(SupplierRFQ).filter(SupplierRFQ.access_token == token).one()
        supplier_rfq.token_expires_at = datetime.utcnow() - timedelta(hours=1)
        db_session.commit()
        assert client.get(f'/api/supplier-portal/{token}').status_code == 410

    def test_portal_error_is_not_echoed(self, client, sent_rfq):
        """Test that an internal failure returns a generic message"""
        _, token = sent_rfq
        with patch.object(SupplierPortalService, 'view', side_effect=RuntimeError('secret sql')):
            response = client.get(f'/api/supplier-portal/{token}')
        assert response.status_code == 500
        assert response.get_json()['error'] == 'An unexpected error occurred'
        assert 'secret sql' not in response.get_data(as_text=True)
