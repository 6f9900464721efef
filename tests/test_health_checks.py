"""
Tests for health check endpoints
"""
import pytest
import time
import psutil
from unittest.mock import Mock, patch
from health_checks import (
    get_system_metrics,
    get_uptime,
    check_database,
    check_integrations
)


@pytest.mark.unit
class TestSystemMetrics:
    """Tests for system metrics collection"""

    def test_get_system_metrics_returns_dict(self):
        """Test that get_system_metrics returns a dictionary"""
        metrics = get_system_metrics()
        assert isinstance(metrics, dict)

    def test_system_metrics_has_cpu_percent(self):
        """Test that system metrics includes CPU percent"""
        metrics = get_system_metrics()
        if metrics:  # Only check if psutil is available
            assert 'cpu_percent' in metrics
            assert isinstance(metrics['cpu_percent'], (int, float))

    def test_system_metrics_has_memory_info(self):
        """Test that system metrics includes memory info"""
        metrics = get_system_metrics()
        if metrics:
            assert 'memory_mb' in metrics
            assert 'memory_percent' in metrics

    @patch('health_checks.psutil.Process')
    def test_system_metrics_handles_errors(self, mock_process):
        """Test that get_system_metrics handles errors gracefully"""
        mock_process.side_effect = psutil.Error("Test error")
        metrics = get_system_metrics()
        assert isinstance(metrics, dict)
        assert len(metrics) == 0  # Should return empty dict on error


@pytest.mark.unit
class TestUptime:
    """Tests for uptime calculation"""

    def test_get_uptime_returns_dict(self):
        """Test that get_uptime returns a dictionary"""
        uptime = get_uptime()
        assert isinstance(uptime, dict)

    def test_uptime_has_required_fields(self):
        """Test that uptime includes all required fields"""
        uptime = get_uptime()
        assert 'uptime_seconds' in uptime
        assert 'uptime_minutes' in uptime
        assert 'uptime_hours' in uptime
        assert 'started_at' in uptime

    def test_uptime_seconds_is_positive(self):
        """Test that uptime seconds is positive"""
        uptime = get_uptime()
        assert uptime['uptime_seconds'] >= 0

    def test_uptime_increases_over_time(self):
        """Test that uptime increases over time"""
        uptime1 = get_uptime()
        time.sleep(0.1)
        uptime2 = get_uptime()
        assert uptime2['uptime_seconds'] > uptime1['uptime_seconds']


@pytest.mark.unit
class TestDatabaseCheck:
    """Tests for database reachability check"""

    @patch('database.connection.check_db_connection')
    def test_check_database_healthy(self, mock_check):
        """Test database check when the query succeeds"""
        mock_check.return_value = True

        database = check_database()

        assert database == {'healthy': True}

    @patch('database.connection.check_db_connection')
    def test_check_database_unreachable(self, mock_check):
        """Test database check when the connection fails"""
        mock_check.side_effect = RuntimeError("Cannot connect to database: refused")

        database = check_database()

        assert database['healthy'] is False
        assert 'refused' in database['error']


@pytest.mark.unit
class TestIntegrationsCheck:
    """Tests for outbound integration configuration check"""

    def test_check_integrations_with_everything_configured(self):
        """Test integrations check when SMTP and gateway are configured"""
        mock_app = Mock()
        mock_app.extensions = {}
        mock_app.config = {
            'SMTP_HOST': 'smtp.example.com',
            'PAYMENT_GATEWAY_URL': 'https://pay.example.com',
            'PAYMENT_GATEWAY_KEY': 'key'
        }

        integrations = check_integrations(mock_app)

        assert integrations['smtp'] is True
        assert integrations['payment_gateway'] is True

    def test_check_integrations_with_nothing_configured(self):
        """Test integrations check when no integration is configured"""
        mock_app = Mock()
        mock_app.extensions = {}
        mock_app.config = {}

        integrations = check_integrations(mock_app)

        assert integrations['smtp'] is False
        assert integrations['payment_gateway'] is False

    def test_check_integrations_asks_installed_gateway(self):
        """Test integrations check defers to an installed gateway"""
        gateway = Mock()
        gateway.is_configured.return_value = True
        mock_app = Mock()
        mock_app.extensions = {'payment_gateway': gateway}
        mock_app.config = {}

        integrations = check_integrations(mock_app)

        assert integrations['payment_gateway'] is True
        gateway.is_configured.assert_called_once()


@pytest.mark.integration
class TestHealthCheckEndpoints:
    """Integration tests for health check endpoints (requires Flask app)"""

    @pytest.fixture
    def app(self):
        """Create a test Flask app with health check blueprint"""
        from flask import Flask
        from health_checks import register_health_checks

        app = Flask(__name__)
        app.config['TESTING'] = True
        app.config['SMTP_HOST'] = 'smtp.example.com'

        register_health_checks(app)

        return app

    @pytest.fixture
    def client(self, app):
        """Create a test client"""
        return app.test_client()

    def test_health_endpoint_returns_200(self, client):
        """Test that /health endpoint returns 200"""
        response = client.get('/api/health')
        assert response.status_code == 200

    def test_health_endpoint_returns_json(self, client):
        """Test that /health endpoint returns JSON"""
        response = client.get('/api/health')
        data = response.get_json()
        assert data is not None
        assert data['status'] == 'healthy'
        assert data['service'] == 'studioflow'

    def test_health_endpoint_has_timestamp(self, client):
        """Test that /health endpoint includes timestamp"""
        response = client.get('/api/health')
        data = response.get_json()
        assert 'timestamp' in data

    def test_ping_endpoint_returns_pong(self, client):
        """Test that /ping endpoint returns 'pong'"""
        response = client.get('/api/ping')
        assert response.status_code == 200
        assert response.data == b'pong'

    @patch('health_checks.check_database')
    def test_ready_endpoint_reports_ready(self, mock_database, client):
        """Test that /ready returns 200 when the database answers"""
        mock_database.return_value = {'healthy': True}
        response = client.get('/api/ready')
        data = response.get_json()
        assert response.status_code == 200
        assert data['status'] == 'ready'
        assert data['checks']['database']['healthy'] is True

    @patch('health_checks.check_database')
    def test_ready_endpoint_reports_not_ready(self, mock_database, client):
        """Test that /ready returns 503 when the database is down"""
        mock_database.return_value = {'healthy': False, 'error': 'down'}
        response = client.get('/api/ready')
        assert response.status_code == 503
        assert response.get_json()['status'] == 'not_ready'

    @patch('health_checks.check_database')
    def test_ready_endpoint_checks_integrations(self, mock_database, client):
        """Test that /ready endpoint reports integrations"""
        mock_database.return_value = {'healthy': True}
        response = client.get('/api/ready')
        data = response.get_json()
        assert data['checks']['integrations']['smtp'] is True

    def test_metrics_endpoint_returns_200(self, client):
        """Test that /metrics endpoint returns 200"""
        response = client.get('/api/metrics')
        assert response.status_code == 200

    def test_metrics_endpoint_has_uptime(self, client):
        """Test that /metrics endpoint includes uptime"""
        response = client.get('/api/metrics')
        data = response.get_json()
        assert 'uptime' in data
        assert 'uptime_seconds' in data['uptime']

    def test_metrics_endpoint_has_version(self, client):
        """Test that /metrics endpoint includes version"""
        response = client.get('/api/metrics')
        data = response.get_json()
        assert 'version' in data

    def test_metrics_endpoint_has_integrations(self, client):
        """Test that /metrics endpoint includes integration status"""
        response = client.get('/api/metrics')
        data = response.get_json()
        assert 'integrations' in data
