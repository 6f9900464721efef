"""
Tests for project updates and their photos
"""
import pytest
from database.models import EventLog, User
from services.errors import ForbiddenError, NotFoundError
from services.project_updates_repository import ProjectUpdatesRepository
from validators import ValidationError


@pytest.fixture
def updates(db_session, org, owner):
    return ProjectUpdatesRepository(db_session, org.id, owner.id, 'OWNER')


@pytest.fixture
def designer(db_session, org):
    """Designer account in the same organization"""
    user = User(organization_id=org.id, email='designer@studio.example.com', name='Dana Designer',
                password_hash='x', role='DESIGNER', is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def site_visit(updates, project_setup, db_session):
    """Progress update on the living room"""
    update = updates.create_update(project_setup['project_id'], {
        'type': 'INSPECTION',
        'category': 'PROGRESS',
        'title': 'Site visit',
        'description': 'Drywall finished, painting next week',
        'room_id': project_setup['room_id'],
        'location': 'Living room'
    })
    db_session.commit()
    return update


@pytest.mark.unit
class TestProjectUpdates:
    """Tests for the project site log"""

    def test_create_defaults(self, site_visit, owner):
        """Test that a new update is ACTIVE, MEDIUM priority and authored by the caller"""
        assert site_visit['status'] == 'ACTIVE'
        assert site_visit['priority'] == 'MEDIUM'
        assert site_visit['author_id'] == owner.id
        assert site_visit['room_name'] == 'Living Room'
        assert site_visit['photo_count'] == 0

    def test_type_and_category_required(self, updates, project_setup):
        """Test the required choices"""
        with pytest.raises(ValidationError) as exc_info:
            updates.create_update(project_setup['project_id'], {'category': 'PROGRESS'})
        assert exc_info.value.field == 'type'
        with pytest.raises(ValidationError) as exc_info:
            updates.create_update(project_setup['project_id'], {'type': 'GENERAL'})
        assert exc_info.value.field == 'category'
        with pytest.raises(ValidationError):
            updates.create_update(project_setup['project_id'], {'type': 'GOSSIP', 'category': 'GENERAL'})

    def test_room_must_belong_to_project(self, updates, project_setup):
        """Test that an unknown room is reported missing"""
        with pytest.raises(NotFoundError):
            updates.create_update(project_setup['project_id'], {
                'type': 'GENERAL', 'category': 'GENERAL', 'room_id': 'elsewhere'
            })

    def test_unknown_project(self, updates):
        """Test that updates are scoped to the organization's projects"""
        with pytest.raises(NotFoundError):
            updates.list_updates('missing')

    def test_list_filters_pagination_and_stats(self, updates, project_setup, db_session):
        """Test filtering, paging and the per-type stats"""
        project_id = project_setup['project_id']
        for title, kind in (('Tiles delivered', 'MILESTONE'), ('Cracked tile', 'ISSUE'),
                            ('Grout colour', 'GENERAL')):
            updates.create_update(project_id, {'type': kind, 'category': 'QUALITY', 'title': title})
        db_session.commit()

        page = updates.list_updates(project_id, {'limit': '2'})
        assert len(page['updates']) == 2
        assert page['pagination'] == {'page': 1, 'limit': 2, 'total': 3, 'total_pages': 2}
        assert page['stats']['by_type'] == {'MILESTONE': 1, 'ISSUE': 1, 'GENERAL': 1}

        issues = updates.list_updates(project_id, {'type': 'ISSUE'})
        assert [u['title'] for u in issues['updates']] == ['Cracked tile']
        assert issues['stats']['by_status'] == {'ACTIVE': 3}

        found = updates.list_updates(project_id, {'search': 'grout'})
        assert [u['title'] for u in found['updates']] == ['Grout colour']

    def test_bad_page_rejected(self, updates, project_setup):
        """Test that page must be a positive whole number"""
        with pytest.raises(ValidationError):
            updates.list_updates(project_setup['project_id'], {'page': '0'})

    def test_complete_stamps_once(self, updates, site_visit, project_setup, owner, db_session):
        """Test that COMPLETED records when and by whom, and changes are logged"""
        updated = updates.update_update(project_setup['project_id'], site_visit['id'], {
            'status': 'COMPLETED', 'actual_cost': '120'
        })
        db_session.commit()
        assert updated['status'] == 'COMPLETED'
        assert updated['completed_by_id'] == owner.id
        assert updated['actual_cost'] == 120.0
        first_completed = updated['completed_at']

        again = updates.update_update(project_setup['project_id'], site_visit['id'], {'status': 'COMPLETED'})
        assert again['completed_at'] == first_completed

        event = db_session.query(EventLog).filter(
            EventLog.entity_id == site_visit['id'], EventLog.event_type == 'UPDATED'
        ).one()
        assert event.extra_data['changes']['status'] == {'from': 'ACTIVE', 'to': 'COMPLETED'}

    def test_only_author_or_admin_deletes(self, db_session, org, designer, site_visit, project_setup):
        """Test that another designer cannot delete the owner's update"""
        other = ProjectUpdatesRepository(db_session, org.id, designer.id, 'DESIGNER')
        with pytest.raises(ForbiddenError) as exc_info:
            other.delete_update(project_setup['project_id'], site_visit['id'])
        assert exc_info.value.status_code == 403

        own = other.create_update(project_setup['project_id'], {'type': 'GENERAL', 'category': 'GENERAL'})
        db_session.commit()
        assert other.delete_update(project_setup['project_id'], own['id']) is True

    def test_owner_deletes_with_photos(self, updates, db_session, org, designer, project_setup):
        """Test that an owner can delete someone else's update along with its photos"""
        other = ProjectUpdatesRepository(db_session, org.id, designer.id, 'DESIGNER')
        update = other.create_update(project_setup['project_id'], {'type': 'PHOTO', 'category': 'PROGRESS'})
        db_session.commit()
        other.add_photo(project_setup['project_id'], update['id'], {'url': 'https://cdn.example.com/p/1.jpg'})
        db_session.commit()

        assert updates.delete_update(project_setup['project_id'], update['id']) is True
        db_session.commit()
        with pytest.raises(NotFoundError):
            updates.get_update(project_setup['project_id'], update['id'])


@pytest.mark.unit
class TestProjectUpdatePhotos:
    """Tests for photos attached to updates"""

    def test_url_required_and_checked(self, updates, site_visit, project_setup):
        """Test that photos need an http(s) URL"""
        with pytest.raises(ValidationError) as exc_info:
            updates.add_photo(project_setup['project_id'], site_visit['id'], {'caption': 'No file'})
        assert exc_info.value.field == 'url'
        with pytest.raises(ValidationError) as exc_info:
            updates.add_photo(project_setup['project_id'], site_visit['id'], {'url': 'photos/1.jpg'})
        assert exc_info.value.field == 'url'

    def test_tags_must_be_strings(self, updates, site_visit, project_setup):
        """Test that tags are a list of strings"""
        with pytest.raises(ValidationError) as exc_info:
            updates.add_photo(project_setup['project_id'], site_visit['id'], {
                'url': 'https://cdn.example.com/p/1.jpg', 'tags': 'paint'
            })
        assert exc_info.value.field == 'tags'

    def test_before_and_after_pair(self, updates, site_visit, project_setup, db_session):
        """Test that an after photo links back to its before photo"""
        project_id = project_setup['project_id']
        before = updates.add_photo(project_id, site_visit['id'], {
            'url': 'https://cdn.example.com/p/before.jpg',
            'caption': 'Bare wall',
            'is_before_photo': True,
            'trade_category': 'painting',
            'room_area': 'north wall',
            'taken_at': '2025-03-01T09:00:00Z'
        })
        db_session.commit()
        after = updates.add_photo(project_id, site_visit['id'], {
            'url': 'https://cdn.example.com/p/after.jpg',
            'is_after_photo': True,
            'paired_photo_id': before['id'],
            'trade_category': 'painting',
            'gps_coordinates': {'lat': 45.5, 'lng': -73.6},
            'tags': ['paint', ' finish '],
            'taken_at': '2025-03-08T09:00:00Z'
        })
        db_session.commit()
        assert after['paired_photo_id'] == before['id']
        assert after['tags'] == ['paint', 'finish']

        listing = updates.list_photos(project_id, site_visit['id'])
        assert [p['id'] for p in listing['photos']] == [after['id'], before['id']]
        assert listing['stats']['total'] == 2
        assert listing['stats']['by_trade_category'] == {'painting': 2}
        assert listing['stats']['by_room_area'] == {'north wall': 1}
        assert listing['stats']['before_after_pairs'] == 1
        assert listing['stats']['with_gps'] == 1
        pair = listing['before_after_pairs'][0]
        assert pair['before']['id'] == before['id']
        assert pair['after']['id'] == after['id']

        assert updates.get_update(project_id, site_visit['id'])['photo_count'] == 2

    def test_both_before_and_after_rejected(self, updates, site_visit, project_setup):
        """Test that a photo is either before or after"""
        with pytest.raises(ValidationError):
            updates.add_photo(project_setup['project_id'], site_visit['id'], {
                'url': 'https://cdn.example.com/p/1.jpg', 'is_before_photo': True, 'is_after_photo': True
            })

    def test_pair_with_unknown_photo(self, updates, site_visit, project_setup):
        """Test that pairing needs a photo on the same update"""
        with pytest.raises(NotFoundError):
            updates.add_photo(project_setup['project_id'], site_visit['id'], {
                'url': 'https://cdn.example.com/p/1.jpg', 'is_after_photo': True, 'paired_photo_id': 'missing'
            })

    def test_update_and_delete_photo(self, updates, site_visit, project_setup, db_session):
        """Test editing metadata and that removing a photo unpairs its partner"""
        project_id = project_setup['project_id']
        before = updates.add_photo(project_id, site_visit['id'], {
            'url': 'https://cdn.example.com/p/before.jpg', 'is_before_photo': True
        })
        db_session.commit()
        after = updates.add_photo(project_id, site_visit['id'], {
            'url': 'https://cdn.example.com/p/after.jpg', 'is_after_photo': True, 'paired_photo_id': before['id']
        })
        db_session.commit()

        edited = updates.update_photo(project_id, site_visit['id'], before['id'], {
            'caption': 'Before painting', 'tags': ['prep']
        })
        db_session.commit()
        assert edited['caption'] == 'Before painting'
        assert edited['tags'] == ['prep']

        assert updates.delete_photo(project_id, site_visit['id'], after['id']) is True
        db_session.commit()
        listing = updates.list_photos(project_id, site_visit['id'])
        assert [p['id'] for p in listing['photos']] == [before['id']]
        assert listing['photos'][0]['paired_photo_id'] is None
        assert listing['before_after_pairs'] == []

        with pytest.raises(NotFoundError):
            updates.delete_photo(project_id, site_visit['id'], after['id'])


@pytest.mark.integration
class TestProjectUpdateEndpoints:
    """Integration tests for project update routes"""

    def test_create_list_and_photos(self, auth_client, project_setup):
        """Test the update and photo flow over the API"""
        base = f"/api/projects/{project_setup['project_id']}/updates"
        created = auth_client.post(base, json={'type': 'PHOTO', 'category': 'PROGRESS', 'title': 'Week 3'})
        assert created.status_code == 201
        update_id = created.get_json()['update']['id']

        listing = auth_client.get(f"{base}?type=PHOTO").get_json()
        assert listing['pagination']['total'] == 1
        assert listing['updates'][0]['title'] == 'Week 3'

        photo = auth_client.post(f"{base}/{update_id}/photos",
                                 json={'url': 'https://cdn.example.com/p/w3.jpg', 'caption': 'Millwork'})
        assert photo.status_code == 201
        photos = auth_client.get(f"{base}/{update_id}/photos").get_json()
        assert photos['stats']['total'] == 1

        detail = auth_client.get(f"{base}/{update_id}").get_json()['update']
        assert detail['photos'][0]['caption'] == 'Millwork'

        edited = auth_client.put(f"{base}/{update_id}", json={'priority': 'HIGH'})
        assert edited.get_json()['update']['priority'] == 'HIGH'

        assert auth_client.delete(f"{base}/{update_id}").status_code == 200
        assert auth_client.get(f"{base}/{update_id}").status_code == 404

    def test_validation_and_missing(self, auth_client, project_setup):
        """Test the 400 and 404 responses"""
        base = f"/api/projects/{project_setup['project_id']}/updates"
        assert auth_client.post(base, json={'title': 'No type'}).status_code == 400
        assert auth_client.get(f"{base}/missing/photos").status_code == 404
        assert auth_client.get('/api/projects/missing/updates').status_code == 404

    def test_updates_need_login(self, client, project_setup):
        """Test that the site log is not public"""
        response = client.get(f"/api/projects/{project_setup['project_id']}/updates")
        assert response.status_code == 401
