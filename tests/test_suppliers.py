"""
Tests for supplier records
"""
import pytest
from database.models import EventLog
from services.errors import NotFoundError
from services.suppliers_repository import SuppliersRepository, DEFAULT_MARKUP_PERCENT
from validators import ValidationError


@pytest.fixture
def repo(db_session, org, owner):
    return SuppliersRepository(db_session, org.id, owner.id)


@pytest.mark.unit
class TestSuppliersRepository:
    """Tests for supplier management"""

    def test_default_markup_and_currency(self, repo):
        """Test that new suppliers get the default markup and CAD"""
        supplier = repo.create_supplier({'name': 'Lumen Lighting'})
        assert supplier['markup_percent'] == DEFAULT_MARKUP_PERCENT
        assert supplier['currency'] == 'CAD'
        assert supplier['is_active'] is True

    def test_name_required(self, repo):
        """Test that suppliers need a name"""
        with pytest.raises(ValidationError) as exc_info:
            repo.create_supplier({'email': 'a@b.com'})
        assert exc_info.value.field == 'name'

    def test_negative_markup_rejected(self, repo):
        """Test that markup cannot be negative"""
        with pytest.raises(ValidationError):
            repo.create_supplier({'name': 'Cheap Co', 'markup_percent': -10})

    def test_bad_phone_and_website_rejected(self, repo):
        """Test that phone and website are checked when given"""
        with pytest.raises(ValidationError) as exc_info:
            repo.create_supplier({'name': 'Lumen', 'phone': 'call us'})
        assert exc_info.value.field == 'phone'
        with pytest.raises(ValidationError) as exc_info:
            repo.create_supplier({'name': 'Lumen', 'website': 'lumen.example.com'})
        assert exc_info.value.field == 'website'
        supplier = repo.create_supplier({'name': 'Lumen', 'phone': '(514) 555-0199',
                                         'website': 'https://lumen.example.com'})
        assert supplier['phone'] == '(514) 555-0199'

    def test_bad_email_rejected(self, repo):
        """Test that malformed emails fail"""
        with pytest.raises(ValidationError):
            repo.create_supplier({'name': 'Cheap Co', 'email': 'not-an-email'})

    def test_update_logs_changes(self, repo, supplier, db_session):
        """Test that updates are written to the event log"""
        updated = repo.update_supplier(supplier['id'], {'phone': '514-555-0100', 'markup_percent': '30'})
        db_session.commit()
        assert updated['phone'] == '514-555-0100'
        assert updated['markup_percent'] == 30.0

        events = db_session.query(EventLog).filter(
            EventLog.entity_id == supplier['id'],
            EventLog.event_type == 'UPDATED'
        ).all()
        assert len(events) == 1

    def test_deactivated_suppliers_hidden(self, repo, supplier, db_session):
        """Test that deactivated suppliers drop out of the default listing"""
        repo.deactivate_supplier(supplier['id'])
        db_session.commit()
        assert repo.list_suppliers() == []
        assert len(repo.list_suppliers(active_only=False)) == 1

    def test_search(self, repo, supplier, db_session):
        """Test that search matches contact names"""
        repo.create_supplier({'name': 'Lumen Lighting', 'contact_name': 'Marie Roy'})
        db_session.commit()
        assert [s['name'] for s in repo.search_suppliers('tremblay')] == ['Maison Home']

    def test_unknown_supplier(self, repo):
        """Test that missing suppliers raise NotFoundError"""
        with pytest.raises(NotFoundError):
            repo.get_supplier('missing')


@pytest.mark.integration
class TestSupplierEndpoints:
    """Integration tests for supplier routes"""

    def test_create_and_list(self, auth_client):
        """Test creating a supplier over the API"""
        response = auth_client.post('/api/suppliers', json={'name': 'Lumen Lighting'})
        assert response.status_code == 201
        suppliers = auth_client.get('/api/suppliers').get_json()['suppliers']
        assert [s['name'] for s in suppliers] == ['Lumen Lighting']

    def test_delete_deactivates(self, auth_client, supplier):
        """Test that DELETE keeps the record but hides it"""
        assert auth_client.delete(f"/api/suppliers/{supplier['id']}").status_code == 200
        assert auth_client.get('/api/suppliers').get_json()['suppliers'] == []
        listing = auth_client.get('/api/suppliers?include_inactive=true').get_json()['suppliers']
        assert listing[0]['is_active'] is False
