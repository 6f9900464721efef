"""
Pytest configuration and shared fixtures
"""
import os
import sys
import pytest
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Outbound email stays off regardless of the developer's shell
os.environ.pop('SMTP_HOST', None)


@pytest.fixture
def app_config():
    """Fixture providing test configuration"""
    from config import TestingConfig
    return TestingConfig


@pytest.fixture
def gateway():
    """In-process card gateway that records every sale"""
    from services.payment_service import InProcessPaymentGateway
    return InProcessPaymentGateway()


@pytest.fixture
def app(gateway):
    """Flask app bound to a fresh in-memory database"""
    from app_init import create_app
    from database.connection import reset_engine

    app = create_app('testing', payment_gateway=gateway)
    yield app
    reset_engine()


@pytest.fixture
def db_session(app):
    """
    Session on the test database.

    Tests commit between service calls the way each API request does.
    """
    from database.connection import get_session_factory

    session = get_session_factory()()
    with app.app_context():
        yield session
    session.rollback()
    session.close()


@pytest.fixture
def org(db_session):
    """Default organization"""
    from database.seed import seed_default_organization

    organization = seed_default_organization(db_session)
    db_session.commit()
    return organization


@pytest.fixture
def owner(db_session, org):
    """Owner account of the default organization"""
    from database.seed import seed_default_owner

    user = seed_default_owner(db_session, org.id)
    db_session.commit()
    return user


@pytest.fixture
def client(app):
    """Anonymous test client"""
    return app.test_client()


@pytest.fixture
def login(client):
    """Put a user into the test client's session"""
    def _login(user):
        with client.session_transaction() as sess:
            sess['user_id'] = user.id
            sess['organization_id'] = user.organization_id
            sess['user_role'] = user.role
            sess['user_name'] = user.name
        return client
    return _login


@pytest.fixture
def auth_client(login, owner):
    """Test client logged in as the owner"""
    return login(owner)


@pytest.fixture
def project_setup(db_session, org, owner):
    """
    Client, project and a living room with a Furniture section holding a
    sofa and an armchair priced at trade.
    """
    from services.projects_repository import ProjectsRepository
    from services.ffe_repository import FFERepository

    projects = ProjectsRepository(db_session, org.id, owner.id)
    customer = projects.create_client({'name': 'Alice Martin', 'email': 'alice@example.com'})
    project = projects.create_project({
        'name': 'Martin Residence',
        'client_id': customer['id'],
        'rooms': [{'type': 'LIVING_ROOM'}]
    })
    db_session.commit()
    room_id = project['rooms'][0]['id']

    ffe = FFERepository(db_session, org.id, owner.id)
    section = ffe.create_section(room_id, 'Furniture')
    db_session.commit()
    sofa = ffe.add_items(room_id, {'section_id': section['id'], 'name': 'Sofa'})['items'][0]
    chair = ffe.add_items(room_id, {'section_id': section['id'], 'name': 'Armchair'})['items'][0]
    ffe.update_item_spec(sofa['id'], {'trade_price': 1000, 'brand': 'Maison'})
    ffe.update_item_spec(chair['id'], {'trade_price': 400})
    db_session.commit()

    return {
        'client_id': customer['id'],
        'project_id': project['id'],
        'room_id': room_id,
        'section_id': section['id'],
        'sofa_id': sofa['id'],
        'chair_id': chair['id'],
    }


@pytest.fixture
def supplier(db_session, org, owner):
    """Active supplier with an email and the default markup"""
    from services.suppliers_repository import SuppliersRepository

    created = SuppliersRepository(db_session, org.id, owner.id).create_supplier({
        'name': 'Maison Home',
        'contact_name': 'Jean Tremblay',
        'email': 'sales@maison.example.com',
        'markup_percent': 25
    })
    db_session.commit()
    return created


@pytest.fixture
def quoted_items(db_session, org, owner, project_setup, supplier):
    """Manual quote from the supplier: sofa at 900, armchair at 350"""
    from services.supplier_quote_service import SupplierQuoteService

    result = SupplierQuoteService(db_session, org.id, owner.id).create_manual_quote(
        project_setup['project_id'], {
            'supplier_id': supplier['id'],
            'items': [
                {'item_id': project_setup['sofa_id'], 'unit_price': 900},
                {'item_id': project_setup['chair_id'], 'unit_price': 350}
            ]
        }
    )
    db_session.commit()
    return result['quote']


@pytest.fixture
def invoice_setup(db_session, org, owner, project_setup):
    """
    Draft invoice: sofa at 1000 and two armchairs at 500.
    Subtotal 2000, GST 100, QST 199.50, total 2299.50.
    """
    from services.client_invoice_repository import ClientInvoiceRepository

    invoice = ClientInvoiceRepository(db_session, org.id, owner.id).create_invoice(
        project_setup['project_id'], {
            'title': 'Living room furniture',
            'line_items': [
                {'ffe_item_id': project_setup['sofa_id'], 'display_name': 'Sofa',
                 'client_unit_price': 1000},
                {'ffe_item_id': project_setup['chair_id'], 'display_name': 'Armchair',
                 'client_unit_price': 500, 'quantity': 2}
            ]
        }
    )
    db_session.commit()
    return invoice


@pytest.fixture
def portal_token(db_session, org, owner, invoice_setup):
    """Send the invoice and return the client portal token"""
    from services.client_invoice_repository import ClientInvoiceRepository

    result = ClientInvoiceRepository(db_session, org.id, owner.id).send_to_client(invoice_setup['id'])
    db_session.commit()
    return result['portal_url'].rsplit('/', 1)[1]
