"""
Tests for supplier quote review, manual quotes and quote acceptance
"""
import pytest
from database.models import FFEItem, SupplierQuoteLineItem
from services.errors import NotFoundError
from services.status_sync import StatusSyncService
from services.supplier_quote_service import SupplierQuoteService, match_confidence, format_lead_time
from validators import ValidationError


@pytest.fixture
def service(db_session, org, owner):
    return SupplierQuoteService(db_session, org.id, owner.id, owner.name)


@pytest.fixture
def manual_quote(service, project_setup, supplier, db_session):
    """Quote from the supplier pricing the sofa 20 percent above trade"""
    result = service.create_manual_quote(project_setup['project_id'], {
        'supplier_id': supplier['id'],
        'items': [
            {'item_id': project_setup['sofa_id'], 'unit_price': 1200, 'lead_time': '8 weeks'},
            {'item_id': project_setup['chair_id'], 'unit_price': 400}
        ]
    })
    db_session.commit()
    return result


@pytest.mark.unit
class TestHelpers:
    """Tests for quote helpers"""

    def test_lead_time_wording(self):
        """Test singular and plural weeks"""
        assert format_lead_time(1) == '1 week'
        assert format_lead_time(6) == '6 weeks'

    def test_match_confidence_without_request(self):
        """Test that a line with no RFQ line has no match"""

        class Line:
            item_name = 'Sofa'
            supplier_sku = None
            supplier_model_number = None

        assert match_confidence(Line(), None) == 'none'


@pytest.mark.unit
class TestManualQuotes:
    """Tests for recording quotes received outside the portal"""

    def test_manual_quote_records_prices(self, manual_quote, project_setup, db_session):
        """Test that a manual quote totals the lines and prices the items"""
        quote = manual_quote['quote']
        assert quote['subtotal'] == 1600
        assert quote['total_amount'] == 1600
        assert manual_quote['rfq']['title'] == '[Manual Quotes] Maison Home'
        assert manual_quote['rfq']['status'] == 'FULLY_QUOTED'

        sofa = db_session.get(FFEItem, project_setup['sofa_id'])
        assert sofa.trade_price == 1200
        assert sofa.lead_time == '8 weeks'
        assert sofa.spec_status == 'QUOTE_RECEIVED'

    def test_vendor_name_required(self, service, project_setup):
        """Test that a supplier or a vendor name is required"""
        with pytest.raises(ValidationError) as exc_info:
            service.create_manual_quote(project_setup['project_id'], {
                'items': [{'item_id': project_setup['sofa_id'], 'unit_price': 10}]
            })
        assert exc_info.value.field == 'supplier_id'

    def test_unit_price_required(self, service, project_setup):
        """Test that every line needs a price"""
        with pytest.raises(ValidationError):
            service.create_manual_quote(project_setup['project_id'], {
                'supplier_name': 'Atelier B',
                'items': [{'item_id': project_setup['sofa_id']}]
            })

    def test_missing_items_listed(self, service, project_setup):
        """Test that unknown item ids are reported in the details"""
        with pytest.raises(NotFoundError) as exc_info:
            service.create_manual_quote(project_setup['project_id'], {
                'supplier_name': 'Atelier B',
                'items': [{'item_id': 'ghost', 'unit_price': 10}]
            })
        assert exc_info.value.details == {'item_ids': ['ghost']}


@pytest.mark.unit
class TestQuoteReview:
    """Tests for listing and reviewing quotes"""

    def test_listing_flags_price_above_target(self, service, manual_quote, project_setup):
        """Test that a line 20 percent over target is a mismatch"""
        result = service.list_project_quotes(project_setup['project_id'])
        assert result['stats']['total'] == 1
        assert result['stats']['with_mismatches'] == 1

        quote = result['quotes'][0]
        assert quote['supplier']['name'] == 'Maison Home'
        assert quote['mismatches'][0]['item_name'] == 'Sofa'
        assert 'Price 20% above target' in quote['mismatches'][0]['reasons'][0]
        sofa_line = next(li for li in quote['line_items'] if li['item_name'] == 'Sofa')
        assert sofa_line['match_confidence'] == 'high'
        assert sofa_line['has_mismatch'] is True

    def test_approve_applies_markup(self, service, manual_quote, project_setup, db_session):
        """Test that approval sets trade price and RRP from the supplier markup"""
        result = service.review_quote(project_setup['project_id'], manual_quote['quote']['id'], 'approve')
        db_session.commit()
        assert result['status'] == 'ACCEPTED'

        sofa = db_session.get(FFEItem, project_setup['sofa_id'])
        assert sofa.trade_price == 1200
        assert sofa.rrp == pytest.approx(1500)
        assert sofa.spec_status == 'QUOTE_APPROVED'
        assert sofa.accepted_quote_line_item_id is not None

    def test_second_approval_supersedes_first(self, service, manual_quote, project_setup, db_session,
                                              org, owner):
        """Test that approving a second supplier's quote leaves one accepted line per item"""
        from services.suppliers_repository import SuppliersRepository

        project_id = project_setup['project_id']
        sofa_id = project_setup['sofa_id']
        lumen = SuppliersRepository(db_session, org.id, owner.id).create_supplier({
            'name': 'Lumen Lighting', 'email': 'quotes@lumen.example.com', 'markup_percent': 30
        })
        db_session.commit()
        second = service.create_manual_quote(project_id, {
            'supplier_id': lumen['id'],
            'items': [{'item_id': sofa_id, 'unit_price': 950}]
        })
        db_session.commit()

        service.review_quote(project_id, manual_quote['quote']['id'], 'approve')
        db_session.commit()
        service.review_quote(project_id, second['quote']['id'], 'approve')
        db_session.commit()

        accepted = db_session.query(SupplierQuoteLineItem).filter(
            SupplierQuoteLineItem.ffe_item_id == sofa_id,
            SupplierQuoteLineItem.is_accepted == True  # noqa: E712
        ).all()
        assert len(accepted) == 1
        assert accepted[0].supplier_quote_id == second['quote']['id']

        sofa = db_session.get(FFEItem, sofa_id)
        assert sofa.accepted_quote_line_item_id == accepted[0].id
        assert sofa.trade_price == 950
        assert sofa.rrp == pytest.approx(1235)
        assert sofa.supplier_name == 'Lumen Lighting'

        quotes = StatusSyncService(db_session, org.id, owner.id).get_item_quotes(sofa_id)
        assert sum(1 for q in quotes if q.get('is_accepted')) == 1

    def test_decline_returns_items_to_selected(self, service, manual_quote, project_setup, db_session):
        """Test that declining sends the items back to SELECTED"""
        service.review_quote(project_setup['project_id'], manual_quote['quote']['id'], 'decline')
        db_session.commit()
        assert db_session.get(FFEItem, project_setup['sofa_id']).spec_status == 'SELECTED'

    def test_only_declined_quotes_can_be_deleted(self, service, manual_quote, project_setup, db_session):
        """Test that deleting requires a REJECTED quote"""
        quote_id = manual_quote['quote']['id']
        with pytest.raises(ValidationError):
            service.delete_declined_quote(project_setup['project_id'], quote_id)

        service.review_quote(project_setup['project_id'], quote_id, 'decline')
        db_session.commit()
        assert service.delete_declined_quote(project_setup['project_id'], quote_id) is True

    def test_invalid_action(self, service, manual_quote, project_setup):
        """Test that unknown review actions fail"""
        with pytest.raises(ValidationError):
            service.review_quote(project_setup['project_id'], manual_quote['quote']['id'], 'maybe')

    def test_update_lines_recomputes_totals(self, service, manual_quote, project_setup):
        """Test that correcting a price updates line and quote totals"""
        quote = manual_quote['quote']
        chair_line = next(li for li in quote['line_items'] if li['item_name'] == 'Armchair')
        updated = service.update_quote_lines(project_setup['project_id'], quote['id'], [
            {'id': chair_line['id'], 'unit_price': 380, 'quantity': 2}
        ])
        assert updated['subtotal'] == 1200 + 760
        assert updated['total_amount'] == 1960

    def test_quote_from_other_project_not_found(self, service, manual_quote):
        """Test that quotes are looked up within the project"""
        with pytest.raises(NotFoundError):
            service.review_quote('other-project', manual_quote['quote']['id'], 'approve')


@pytest.mark.unit
class TestQuoteComparison:
    """Tests for comparing and accepting quote lines per item"""

    def test_compare_and_accept(self, service, manual_quote, project_setup, db_session, org, owner):
        """Test that the cheaper supplier is flagged and accepting copies its price"""
        service.create_manual_quote(project_setup['project_id'], {
            'supplier_name': 'Atelier B',
            'items': [{'item_id': project_setup['sofa_id'], 'unit_price': 1100}]
        })
        db_session.commit()

        sync = StatusSyncService(db_session, org.id, owner.id)
        quotes = sync.get_item_quotes(project_setup['sofa_id'])
        assert len(quotes) == 2
        lowest = next(q for q in quotes if q['is_lowest_price'])
        assert lowest['supplier_name'] == 'Atelier B'
        other = next(q for q in quotes if not q['is_lowest_price'])
        assert other['price_difference'] == 100

        item = service.accept_line_for_item(project_setup['sofa_id'], lowest['quote_line_item_id'], '30')
        assert item['trade_price'] == 1100
        assert item['supplier_name'] == 'Atelier B'
        assert item['markup_percent'] == 30
        assert item['spec_status'] == 'QUOTE_APPROVED'

    def test_accepting_unknown_line(self, service, project_setup):
        """Test that an unknown quote line is not found"""
        with pytest.raises(NotFoundError):
            service.accept_line_for_item(project_setup['sofa_id'], 'missing')


@pytest.mark.integration
class TestSupplierQuoteEndpoints:
    """Integration tests for supplier quote routes"""

    def test_list_and_approve(self, auth_client, manual_quote, project_setup):
        """Test listing and approving a quote over the API"""
        url = f"/api/projects/{project_setup['project_id']}/supplier-quotes"
        listing = auth_client.get(url).get_json()
        assert listing['stats']['submitted'] == 1

        quote_id = manual_quote['quote']['id']
        response = auth_client.patch(f'{url}/{quote_id}', json={'action': 'approve'})
        assert response.get_json()['quote']['status'] == 'ACCEPTED'

    def test_bad_action_returns_400(self, auth_client, manual_quote, project_setup):
        """Test that an invalid review action returns 400"""
        url = f"/api/projects/{project_setup['project_id']}/supplier-quotes/{manual_quote['quote']['id']}"
        response = auth_client.patch(url, json={'action': 'shrug'})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'action'
