"""
Tests for the drawing register, CAD freshness and transmittals
"""
import pytest
from services.drawing_repository import DrawingRepository
from services.errors import ConflictError, NotFoundError
from validators import ValidationError


@pytest.fixture
def drawings(db_session, org, owner):
    return DrawingRepository(db_session, org.id, owner.id)


@pytest.fixture
def plan(drawings, project_setup, db_session):
    """CAD-linked floor plan issued at revision 1"""
    drawing = drawings.create_drawing(project_setup['project_id'], {
        'drawing_number': 'A-101',
        'title': 'Ground floor plan',
        'room_id': project_setup['room_id'],
        'cad_source_path': 'cad/ground-floor.dwg'
    })
    db_session.commit()
    drawing = drawings.add_revision(drawing['id'], {'description': 'Issued for review'})
    db_session.commit()
    return drawing


@pytest.mark.unit
class TestDrawings:
    """Tests for the drawing register"""

    def test_create_defaults(self, drawings, project_setup):
        """Test that a new drawing is ACTIVE at revision 0"""
        drawing = drawings.create_drawing(project_setup['project_id'], {
            'drawing_number': 'ID-201', 'title': 'Kitchen elevations'
        })
        assert drawing['status'] == 'ACTIVE'
        assert drawing['discipline'] == 'INTERIOR_DESIGN'
        assert drawing['current_revision'] == 0
        assert drawing['cad_freshness_status'] is None

    def test_duplicate_number_conflicts(self, drawings, plan, project_setup):
        """Test that drawing numbers are unique within a project"""
        with pytest.raises(ConflictError) as exc_info:
            drawings.create_drawing(project_setup['project_id'], {
                'drawing_number': 'A-101', 'title': 'Copy'
            })
        assert exc_info.value.status_code == 409

    def test_number_and_title_required(self, drawings, project_setup):
        """Test the required fields"""
        with pytest.raises(ValidationError):
            drawings.create_drawing(project_setup['project_id'], {'title': 'No number'})
        with pytest.raises(ValidationError):
            drawings.create_drawing(project_setup['project_id'], {'drawing_number': 'A-1'})

    def test_unknown_discipline(self, drawings, project_setup):
        """Test that disciplines come from the fixed list"""
        with pytest.raises(ValidationError):
            drawings.create_drawing(project_setup['project_id'], {
                'drawing_number': 'X-1', 'title': 'Mystery', 'discipline': 'ALCHEMY'
            })

    def test_room_must_belong_to_project(self, drawings, project_setup):
        """Test that a foreign room is not found"""
        with pytest.raises(NotFoundError):
            drawings.create_drawing(project_setup['project_id'], {
                'drawing_number': 'A-1', 'title': 'Plan', 'room_id': 'elsewhere'
            })

    def test_revisions_increment(self, drawings, plan, db_session):
        """Test that each revision takes the next number"""
        drawing = drawings.add_revision(plan['id'], {'description': 'Client comments'})
        assert drawing['current_revision'] == 2
        assert [r['revision_number'] for r in drawing['revisions']] == [1, 2]
        assert drawing['plotted_from_revision'] == 2

    def test_archived_hidden_from_list(self, drawings, plan, project_setup, db_session):
        """Test that archived drawings are listed only on request"""
        drawings.update_drawing(plan['id'], {'status': 'ARCHIVED'})
        db_session.commit()
        assert drawings.list_drawings(project_setup['project_id']) == []
        assert len(drawings.list_drawings(project_setup['project_id'], include_archived=True)) == 1


@pytest.mark.unit
class TestCadFreshness:
    """Tests for CAD source freshness tracking"""

    def test_revision_marks_plot_current(self, plan):
        """Test that issuing a revision counts as a fresh plot"""
        assert plan['cad_freshness_status'] == 'UP_TO_DATE'
        assert plan['plotted_from_revision'] == 1

    def test_newer_cad_save_marks_modified(self, drawings, plan, project_setup, db_session):
        """Test that a CAD save after the plot marks the drawing stale"""
        drawing = drawings.report_cad_modified(plan['id'], '2099-01-01T09:00:00Z')
        db_session.commit()
        assert drawing['cad_freshness_status'] == 'CAD_MODIFIED'
        stale = drawings.list_stale_drawings(project_setup['project_id'])
        assert [d['drawing_number'] for d in stale] == ['A-101']

    def test_older_cad_save_is_ignored(self, drawings, plan):
        """Test that a CAD save before the plot leaves it current"""
        drawing = drawings.report_cad_modified(plan['id'], '2000-01-01T09:00:00')
        assert drawing['cad_freshness_status'] == 'UP_TO_DATE'

    def test_freshness_actions(self, drawings, plan):
        """Test dismissing, flagging and replotting"""
        drawings.report_cad_modified(plan['id'], '2099-01-01')
        assert drawings.set_freshness(plan['id'], 'needs_replot')['cad_freshness_status'] == 'NEEDS_REPLOT'
        assert drawings.set_freshness(plan['id'], 'dismiss')['cad_freshness_status'] == 'DISMISSED'
        plotted = drawings.set_freshness(plan['id'], 'mark_plotted')
        assert plotted['cad_freshness_status'] == 'UP_TO_DATE'
        assert plotted['plotted_from_revision'] == 1

        with pytest.raises(ValidationError):
            drawings.set_freshness(plan['id'], 'ignore_forever')

    def test_drawing_without_cad_source(self, drawings, project_setup):
        """Test that freshness needs a CAD source file"""
        drawing = drawings.create_drawing(project_setup['project_id'], {
            'drawing_number': 'S-1', 'title': 'Sketch'
        })
        with pytest.raises(ValidationError):
            drawings.report_cad_modified(drawing['id'], None)


@pytest.mark.unit
class TestTransmittals:
    """Tests for issuing drawings to recipients"""

    def test_one_transmittal_per_recipient(self, drawings, plan, project_setup):
        """Test that each recipient gets a numbered DRAFT transmittal"""
        result = drawings.create_transmittals(project_setup['project_id'], {
            'recipients': [
                {'name': 'Bob Contractor', 'email': 'bob@builders.example.com', 'company': 'Builders'},
                {'name': 'Alice Martin'}
            ],
            'items': [{'drawing_id': plan['id'], 'purpose': 'FOR_CONSTRUCTION'}]
        })
        numbers = [t['transmittal_number'] for t in result['transmittals']]
        assert numbers == ['T-001', 'T-002']
        first = result['transmittals'][0]
        assert first['status'] == 'DRAFT'
        assert first['items'][0]['revision_number'] == 1
        assert first['items'][0]['drawing_number'] == 'A-101'
        assert result['warnings'] == []

    def test_stale_drawings_warn(self, drawings, plan, project_setup):
        """Test that stale drawings are included with a warning"""
        drawings.report_cad_modified(plan['id'], '2099-01-01')
        result = drawings.create_transmittals(project_setup['project_id'], {
            'recipients': [{'name': 'Bob'}],
            'items': [{'drawing_id': plan['id']}]
        })
        assert len(result['transmittals']) == 1
        assert result['warnings'][0]['cad_freshness_status'] == 'CAD_MODIFIED'

    def test_drawing_needs_a_revision(self, drawings, project_setup):
        """Test that unrevised drawings cannot be transmitted"""
        drawing = drawings.create_drawing(project_setup['project_id'], {
            'drawing_number': 'S-1', 'title': 'Sketch'
        })
        with pytest.raises(ValidationError):
            drawings.create_transmittals(project_setup['project_id'], {
                'recipients': [{'name': 'Bob'}],
                'items': [{'drawing_id': drawing['id']}]
            })

    def test_recipients_required(self, drawings, plan, project_setup):
        """Test that recipients and items are required"""
        with pytest.raises(ValidationError):
            drawings.create_transmittals(project_setup['project_id'], {
                'items': [{'drawing_id': plan['id']}]
            })

    def test_send_once(self, drawings, plan, project_setup, db_session):
        """Test that sending marks SENT and cannot repeat"""
        result = drawings.create_transmittals(project_setup['project_id'], {
            'recipients': [{'name': 'Bob Contractor', 'email': 'bob@builders.example.com'}],
            'items': [{'drawing_id': plan['id']}]
        })
        db_session.commit()
        transmittal_id = result['transmittals'][0]['id']

        sent = drawings.send_transmittal(transmittal_id)
        db_session.commit()
        assert sent['status'] == 'SENT'
        assert sent['sent_at'] is not None
        assert sent['email_delivered'] is False

        with pytest.raises(ValidationError):
            drawings.send_transmittal(transmittal_id)

    def test_send_immediately(self, drawings, plan, project_setup):
        """Test that send_immediately sends those with an email address"""
        result = drawings.create_transmittals(project_setup['project_id'], {
            'recipients': [{'name': 'Bob', 'email': 'bob@builders.example.com'}, {'name': 'Walk-in'}],
            'items': [{'drawing_id': plan['id']}],
            'send_immediately': True
        })
        assert [t['status'] for t in result['transmittals']] == ['SENT', 'DRAFT']


@pytest.mark.integration
class TestDrawingEndpoints:
    """Integration tests for drawing routes"""

    def test_register_over_api(self, auth_client, project_setup):
        """Test creating a drawing, issuing a revision and flagging it stale"""
        base = f"/api/projects/{project_setup['project_id']}/drawings"
        created = auth_client.post(base, json={
            'drawing_number': 'A-201', 'title': 'Lighting plan', 'cad_source_path': 'cad/lighting.dwg'
        })
        assert created.status_code == 201
        drawing_id = created.get_json()['drawing']['id']

        assert auth_client.post(f'/api/drawings/{drawing_id}/revisions', json={}).status_code == 201
        auth_client.post(f'/api/drawings/{drawing_id}/cad-modified', json={'modified_at': '2099-03-01'})

        stale = auth_client.get(f'{base}/stale').get_json()
        assert stale['count'] == 1

    def test_duplicate_returns_409(self, auth_client, plan, project_setup):
        """Test that a duplicate drawing number returns 409"""
        response = auth_client.post(f"/api/projects/{project_setup['project_id']}/drawings", json={
            'drawing_number': 'A-101', 'title': 'Again'
        })
        assert response.status_code == 409

    def test_drawings_need_login(self, client, project_setup):
        """Test that the register requires a session"""
        assert client.get(f"/api/projects/{project_setup['project_id']}/drawings").status_code == 401
