"""
Tests for purchase orders, order actions and the supplier order portal
"""
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from database.models import FFEItem, Order
from services.client_invoice_repository import ClientInvoiceRepository
from services.errors import NotFoundError, TokenExpiredError
from services.ffe_repository import FFERepository
from services.order_repository import OrderRepository, SupplierOrderPortalService
from validators import ValidationError


@pytest.fixture
def orders(db_session, org, owner):
    return OrderRepository(db_session, org.id, owner.id)


@pytest.fixture
def manual_order(orders, project_setup, db_session):
    """Web purchase of the sofa with shipping, assembly and tax"""
    order = orders.create_manual_order(project_setup['project_id'], {
        'vendor_name': 'Maison Home',
        'vendor_email': 'orders@maison.example.com',
        'items': [{'item_id': project_setup['sofa_id']}],
        'shipping_cost': 50,
        'extra_charges': [{'label': 'Assembly', 'amount': 30}],
        'tax_amount': 10
    })
    db_session.commit()
    return order


@pytest.fixture
def paid_invoice(db_session, org, owner, invoice_setup):
    """The invoice fixture paid in full by cheque"""
    ClientInvoiceRepository(db_session, org.id, owner.id).record_payment(
        invoice_setup['id'], {'amount': invoice_setup['total_amount'], 'method': 'CHECK'}
    )
    db_session.commit()
    return invoice_setup


@pytest.fixture
def placed_order(orders, manual_order, db_session):
    """Manual order placed with the supplier; returns (order, token)"""
    result = orders.perform_action(manual_order['id'], 'place_order')
    db_session.commit()
    return result['order'], result['portal_url'].rsplit('/', 1)[1]


@pytest.mark.unit
class TestManualOrders:
    """Tests for hand-made purchase orders"""

    def test_totals(self, manual_order):
        """Test that the total adds shipping, extra charges and tax"""
        assert manual_order['order_number'] == f"PO-{datetime.utcnow().year}-0001"
        assert manual_order['subtotal'] == 1000
        assert manual_order['total_amount'] == 1090
        assert manual_order['extra_charges'] == [{'label': 'Assembly', 'amount': 30.0}]
        assert manual_order['status'] == 'PAYMENT_RECEIVED'
        assert manual_order['item_count'] == 1

    def test_item_moves_to_client_paid(self, manual_order, project_setup, db_session):
        """Test that an unplaced order syncs payment_received"""
        assert db_session.get(FFEItem, project_setup['sofa_id']).spec_status == 'CLIENT_PAID'

    def test_already_ordered(self, orders, project_setup, db_session):
        """Test that already_ordered starts the order at ORDERED"""
        order = orders.create_manual_order(project_setup['project_id'], {
            'vendor_name': 'Lumen', 'items': [{'item_id': project_setup['chair_id'], 'unit_price': 380}],
            'already_ordered': True
        })
        db_session.commit()
        assert order['status'] == 'ORDERED'
        assert order['ordered_at'] is not None
        assert order['total_amount'] == 380
        assert db_session.get(FFEItem, project_setup['chair_id']).spec_status == 'ORDERED'

    def test_components_are_ordered(self, orders, project_setup, db_session, org, owner):
        """Test that priced components become extra order lines"""
        FFERepository(db_session, org.id, owner.id).add_component(
            project_setup['chair_id'], {'name': 'Cushion', 'model_number': 'C-1', 'price': 45, 'quantity': 2}
        )
        db_session.commit()
        order = orders.create_manual_order(project_setup['project_id'], {
            'vendor_name': 'Lumen', 'items': [{'item_id': project_setup['chair_id']}]
        })
        assert order['subtotal'] == 400 + 90
        component = next(i for i in order['items'] if i['is_component'])
        assert component['name'] == 'Cushion (C-1)'

    def test_item_on_live_order_refused(self, orders, manual_order, project_setup):
        """Test that an item cannot be on two live orders"""
        with pytest.raises(ValidationError) as exc_info:
            orders.create_manual_order(project_setup['project_id'], {
                'vendor_name': 'Other', 'items': [{'item_id': project_setup['sofa_id']}]
            })
        existing = exc_info.value.details['items_with_orders'][0]
        assert existing['existing_order'] == manual_order['order_number']

    def test_cancelled_order_frees_items(self, orders, manual_order, project_setup, db_session):
        """Test that a cancelled order does not block reordering"""
        orders.perform_action(manual_order['id'], 'cancel', {'reason': 'Out of stock'})
        db_session.commit()
        reorder = orders.create_manual_order(project_setup['project_id'], {
            'vendor_name': 'Other', 'items': [{'item_id': project_setup['sofa_id']}]
        })
        assert reorder['order_number'].endswith('-0002')

    def test_vendor_required(self, orders, project_setup):
        """Test that a vendor name is required"""
        with pytest.raises(ValidationError):
            orders.create_manual_order(project_setup['project_id'], {
                'items': [{'item_id': project_setup['sofa_id']}]
            })

    def test_unknown_item(self, orders, project_setup):
        """Test that unknown items are refused"""
        with pytest.raises(NotFoundError):
            orders.create_manual_order(project_setup['project_id'], {
                'vendor_name': 'Other', 'items': [{'item_id': 'ghost'}]
            })

    def test_delete_returns_items(self, orders, manual_order, project_setup, db_session):
        """Test that deleting an unpaid item's order sends it back to QUOTE_APPROVED"""
        assert orders.delete_order(manual_order['id']) is True
        db_session.commit()
        assert db_session.get(FFEItem, project_setup['sofa_id']).spec_status == 'QUOTE_APPROVED'
        with pytest.raises(NotFoundError):
            orders.get_order(manual_order['id'])


@pytest.mark.unit
class TestOrdersFromInvoice:
    """Tests for turning a paid invoice into supplier orders"""

    def test_preview_groups_by_supplier(self, orders, quoted_items, paid_invoice, project_setup):
        """Test that the preview prices lines from the supplier quote"""
        preview = orders.preview_orders_from_invoice(project_setup['project_id'],
                                                     {'client_quote_id': paid_invoice['id']})
        assert len(preview['orders']) == 1
        group = preview['orders'][0]
        assert group['supplier_name'] == 'Maison Home'
        assert group['item_count'] == 2
        assert group['subtotal'] == 900 + 350 * 2
        assert preview['items_without_supplier'] == []

    def test_create_orders(self, orders, quoted_items, paid_invoice, project_setup, db_session):
        """Test that one PAYMENT_RECEIVED order is created and items become ORDERED"""
        result = orders.create_orders_from_invoice(project_setup['project_id'],
                                                   {'client_quote_id': paid_invoice['id']})
        db_session.commit()

        created = result['orders'][0]
        assert created['status'] == 'PAYMENT_RECEIVED'
        assert created['total_amount'] == 1600
        sofa = db_session.get(FFEItem, project_setup['sofa_id'])
        assert sofa.spec_status == 'ORDERED'
        assert sofa.payment_status == 'FULLY_PAID'

        order = db_session.get(Order, created['id'])
        assert order.client_quote_id == paid_invoice['id']

    def test_second_run_refused(self, orders, quoted_items, paid_invoice, project_setup, db_session):
        """Test that items already ordered are not ordered again"""
        orders.create_orders_from_invoice(project_setup['project_id'], {'client_quote_id': paid_invoice['id']})
        db_session.commit()
        with pytest.raises(ValidationError) as exc_info:
            orders.create_orders_from_invoice(project_setup['project_id'],
                                              {'client_quote_id': paid_invoice['id']})
        assert 'already have orders' in exc_info.value.message

    def test_unpaid_invoice_refused(self, orders, quoted_items, invoice_setup, project_setup):
        """Test that an unpaid invoice cannot be ordered"""
        with pytest.raises(ValidationError):
            orders.preview_orders_from_invoice(project_setup['project_id'],
                                               {'client_quote_id': invoice_setup['id']})

    def test_items_without_quotes_reported(self, orders, paid_invoice, project_setup):
        """Test that items with no supplier quote are listed separately"""
        preview = orders.preview_orders_from_invoice(project_setup['project_id'],
                                                     {'invoice_id': paid_invoice['id']})
        assert preview['orders'] == []
        assert {i['reason'] for i in preview['items_without_supplier']} == {'No supplier quote found'}


@pytest.mark.unit
class TestOrderActions:
    """Tests for order actions and updates"""

    def test_place_order(self, placed_order, project_setup, db_session):
        """Test that placing sets ORDERED and issues a portal token"""
        order, token = placed_order
        assert order['status'] == 'ORDERED'
        assert order['ordered_at'] is not None
        assert token
        assert db_session.get(FFEItem, project_setup['sofa_id']).spec_status == 'ORDERED'

    def test_place_order_needs_email(self, orders, project_setup, db_session):
        """Test that an order without any supplier email cannot be placed"""
        order = orders.create_manual_order(project_setup['project_id'], {
            'vendor_name': 'Flea Market', 'items': [{'item_id': project_setup['chair_id']}]
        })
        db_session.commit()
        with pytest.raises(ValidationError):
            orders.perform_action(order['id'], 'place_order')

    def test_tracking_and_delivery(self, orders, placed_order, project_setup, db_session):
        """Test that tracking ships the order and delivery closes it"""
        order, _ = placed_order
        shipped = orders.perform_action(order['id'], 'add_tracking',
                                        {'tracking_number': '1Z999', 'carrier': 'UPS'})['order']
        db_session.commit()
        assert shipped['status'] == 'SHIPPED'
        assert shipped['deliveries'][0]['status'] == 'IN_TRANSIT'
        assert db_session.get(FFEItem, project_setup['sofa_id']).spec_status == 'SHIPPED'

        delivered = orders.perform_action(order['id'], 'mark_delivered', {'received_by': 'Alice'})['order']
        db_session.commit()
        assert delivered['status'] == 'DELIVERED'
        assert delivered['deliveries'][0]['status'] == 'DELIVERED'
        assert db_session.get(FFEItem, project_setup['sofa_id']).spec_status == 'DELIVERED'

        with pytest.raises(ValidationError):
            orders.perform_action(order['id'], 'cancel')

    def test_pay_supplier_defaults_to_total(self, orders, manual_order):
        """Test that the supplier payment defaults to the order total"""
        with pytest.raises(ValidationError):
            orders.perform_action(manual_order['id'], 'pay_supplier', {})
        order = orders.perform_action(manual_order['id'], 'pay_supplier', {'method': 'WIRE'})['order']
        assert order['supplier_payment_amount'] == 1090
        assert order['supplier_paid_at'] is not None

    def test_unknown_action(self, orders, manual_order):
        """Test that unknown actions fail"""
        with pytest.raises(ValidationError):
            orders.perform_action(manual_order['id'], 'teleport')

    def test_status_update_stamps_timestamp(self, orders, manual_order):
        """Test that moving to CONFIRMED sets confirmed_at"""
        order = orders.update_order(manual_order['id'], {'status': 'CONFIRMED', 'notes': 'Called supplier'})
        assert order['confirmed_at'] is not None
        assert order['notes'] == 'Called supplier'

    def test_invalid_status(self, orders, manual_order):
        """Test that unknown statuses fail"""
        with pytest.raises(ValidationError):
            orders.update_order(manual_order['id'], {'status': 'LOST_AT_SEA'})


@pytest.mark.unit
class TestSupplierOrderPortal:
    """Tests for the supplier's order page"""

    def test_view_hides_internal_notes(self, placed_order, db_session):
        """Test that internal notes are not shown to the supplier"""
        _, token = placed_order
        view = SupplierOrderPortalService(db_session).view(token)
        assert 'internal_notes' not in view['order']
        assert view['project']['name'] == 'Martin Residence'

    def test_confirm(self, placed_order, db_session):
        """Test that the supplier can confirm with a note"""
        order, token = placed_order
        portal = SupplierOrderPortalService(db_session)
        result = portal.perform_action(token, 'confirm', {'confirmed_by': 'Jean', 'notes': 'In stock'})
        db_session.commit()
        assert result == {'success': True, 'message': 'Order confirmed'}

        record = db_session.get(Order, order['id'])
        assert record.status == 'CONFIRMED'
        assert record.supplier_confirmed_by == 'Jean'
        assert 'Supplier Note: In stock' in record.notes

    def test_ship_requires_tracking_or_carrier(self, placed_order, db_session):
        """Test that shipping needs a tracking number or carrier"""
        _, token = placed_order
        with pytest.raises(ValidationError):
            SupplierOrderPortalService(db_session).perform_action(token, 'ship', {})

    def test_ship_and_update_eta(self, placed_order, db_session):
        """Test shipping and then moving the delivery date"""
        order, token = placed_order
        portal = SupplierOrderPortalService(db_session)
        portal.perform_action(token, 'ship', {'carrier': 'Purolator'})
        portal.perform_action(token, 'update_eta', {'expected_delivery': '2030-05-01'})
        db_session.commit()

        record = db_session.get(Order, order['id'])
        assert record.status == 'SHIPPED'
        assert record.expected_delivery == datetime(2030, 5, 1)
        assert all(item.status == 'SHIPPED' for item in record.items)

    def test_expired_token_returns_403(self, placed_order, db_session):
        """Test that expired order links are refused with 403"""
        order, token = placed_order
        db_session.get(Order, order['id']).token_expires_at = datetime.utcnow() - timedelta(days=1)
        db_session.commit()
        with pytest.raises(TokenExpiredError) as exc_info:
            SupplierOrderPortalService(db_session).view(token)
        assert exc_info.value.status_code == 403

    def test_invalid_portal_action(self, placed_order, db_session):
        """Test that unknown portal actions fail"""
        _, token = placed_order
        with pytest.raises(ValidationError):
            SupplierOrderPortalService(db_session).perform_action(token, 'refund')


@pytest.mark.integration
class TestOrderEndpoints:
    """Integration tests for order routes"""

    def test_manual_order_and_listing(self, auth_client, project_setup):
        """Test creating an order and listing it"""
        response = auth_client.post(f"/api/projects/{project_setup['project_id']}/orders", json={
            'vendor_name': 'Maison Home', 'items': [{'item_id': project_setup['sofa_id']}]
        })
        assert response.status_code == 201
        listing = auth_client.get('/api/orders').get_json()['orders']
        assert [o['vendor_name'] for o in listing] == ['Maison Home']

    def test_order_pdf(self, auth_client, manual_order):
        """Test that the purchase order PDF downloads"""
        response = auth_client.get(f"/api/orders/{manual_order['id']}/pdf")
        assert response.status_code == 200
        assert response.data.startswith(b'%PDF')

    def test_order_portal_over_http(self, client, placed_order):
        """Test the supplier order page without login"""
        _, token = placed_order
        assert client.get(f'/api/supplier-order/{token}').status_code == 200
        response = client.post(f'/api/supplier-order/{token}', json={'action': 'confirm'})
        assert response.get_json()['message'] == 'Order confirmed'

    def test_unknown_order_token(self, client):
        """Test that an unknown order token returns 404"""
        assert client.get('/api/supplier-order/nope').status_code == 404

    def test_order_portal_error_is_not_echoed(self, client, placed_order):
        """Test that an internal failure on the order page returns a generic message"""
        _, token = placed_order
        with patch.object(SupplierOrderPortalService, 'view', side_effect=RuntimeError('smtp creds')):
            response = client.get(f'/api/supplier-order/{token}')
        assert response.status_code == 500
        assert response.get_json()['error'] == 'An unexpected error occurred'
        assert 'smtp creds' not in response.get_data(as_text=True)
