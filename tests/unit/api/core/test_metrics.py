# tests/unit/api/core/test_metrics.py
import pytest
from flask import Blueprint, jsonify, Flask
import time

from collabchat.core.metrics import metrics, Metrics
from collabchat.core.middleware import configure_middleware


@pytest.fixture
def test_app():
    """Create a fresh test application for each test"""
    app = Flask(__name__)
    app.config['TESTING'] = True
    configure_middleware(app)
    metrics.reset()

    bp = Blueprint('test_metrics', __name__)

    @bp.route('/test-metrics')
    def test_metrics_endpoint():
        return jsonify({'status': 'ok'})

    @bp.route('/test-perf')
    def test_slow_endpoint():
        time.sleep(0.1)  # Simulate some work
        return jsonify({'status': 'ok'})

    @bp.route('/test-missing')
    def test_missing_endpoint():
        return jsonify({'error': 'not_found'}), 404

    app.register_blueprint(bp)
    yield app
    metrics.reset()


def test_basic_metrics_tracking(test_app):
    """Every request is counted by the middleware"""
    with test_app.test_client() as client:
        response = client.get('/test-metrics')
        assert response.status_code == 200

    stats = metrics.get_stats()
    assert stats['total_requests'] == 1
    assert 'test_metrics.test_metrics_endpoint' in stats['endpoints']
    assert stats['error_count'] == 0


def test_error_tracking(test_app):
    """Responses with 4xx/5xx status count as errors"""
    with test_app.test_client() as client:
        client.get('/test-metrics')
        response = client.get('/test-missing')
        assert response.status_code == 404

    stats = metrics.get_stats()
    assert stats['error_count'] == 1
    assert stats['error_rate'] == 50.0


def test_performance_tracking(test_app):
    """Test the response time tracking"""
    with test_app.test_client() as client:
        response = client.get('/test-perf')
        assert response.status_code == 200

    endpoint_stats = metrics.get_stats()['endpoints']['test_metrics.test_slow_endpoint']
    assert endpoint_stats['request_count'] == 1
    assert float(endpoint_stats['average_response_time'].replace('s', '')) >= 0.1


def test_response_times_are_bounded():
    tracker = Metrics()
    for _ in range(1200):
        tracker.track_request('endpoint', 0.01, 200)

    assert tracker.request_count == 1200
    assert len(tracker.response_times['endpoint']) == 1000


def test_poll_statistics():
    tracker = Metrics()
    tracker.poll_started()
    tracker.poll_started()
    tracker.poll_finished()
    tracker.track_poll('timeout', 1.0)
    tracker.track_poll('new_data', 0.5)
    tracker.track_poll('new_data', 0.0)

    polls = tracker.get_stats()['polls']
    assert polls['active'] == 1
    assert polls['outcomes'] == {'timeout': 1, 'new_data': 2}
    assert polls['average_duration'] == '0.500s'


def test_active_polls_never_negative():
    tracker = Metrics()
    tracker.poll_finished()
    assert tracker.get_stats()['polls']['active'] == 0


def test_rejects_non_json_bodies(test_app):
    with test_app.test_client() as client:
        response = client.post('/test-metrics', data='plain', content_type='text/plain')
    assert response.status_code == 415
