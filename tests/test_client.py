from unittest.mock import MagicMock, patch

import pytest
import requests

from fibcursor.api import CursorClient


def make_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    else:
        response.raise_for_status.return_value = None
    return response


class TestCursorClient:
    """Test cases for the HTTP client"""

    def test_moves(self):
        client = CursorClient('http://fib.local:8080/')
        with patch.object(client.session, 'get') as mock_get:
            mock_get.return_value = make_response({'index': 1, 'value': '1'})
            assert client.next() == {'index': 1, 'value': '1'}
            mock_get.assert_called_with('http://fib.local:8080/next', timeout=10)

            client.previous()
            mock_get.assert_called_with('http://fib.local:8080/previous', timeout=10)
            client.current()
            mock_get.assert_called_with('http://fib.local:8080/current', timeout=10)

    def test_cache_stats(self):
        client = CursorClient('http://fib.local')
        with patch.object(client.session, 'get') as mock_get:
            mock_get.return_value = make_response({'direct': 1, 'close': 2, 'miss': 0})
            assert client.cache_stats()['close'] == 2
            mock_get.assert_called_with('http://fib.local/debug/cache', timeout=10)

    @patch('fibcursor.common.error_handler.time.sleep')
    def test_retries_connection_errors(self, mock_sleep):
        client = CursorClient('http://fib.local')
        with patch.object(client.session, 'get') as mock_get:
            mock_get.side_effect = [
                requests.ConnectionError("refused"),
                make_response({'index': 0, 'value': '0'}),
            ]
            assert client.current() == {'index': 0, 'value': '0'}
            assert mock_get.call_count == 2
            mock_sleep.assert_called_once()

    @patch('fibcursor.common.error_handler.time.sleep')
    def test_gives_up_after_retries(self, mock_sleep):
        client = CursorClient('http://fib.local')
        with patch.object(client.session, 'get', side_effect=requests.ConnectionError("down")) as mock_get:
            with pytest.raises(requests.ConnectionError):
                client.current()
            assert mock_get.call_count == 3

    def test_http_errors_are_not_retried(self):
        client = CursorClient('http://fib.local')
        with patch.object(client.session, 'get') as mock_get:
            mock_get.return_value = make_response({'success': False}, status_code=500)
            with pytest.raises(requests.HTTPError):
                client.next()
            assert mock_get.call_count == 1

    def test_against_flask_app(self):
        """Route the client through the Flask test client"""
        from fibcursor.api import CursorServer
        from fibcursor.sequence import FibTracker, SliceCache

        app = CursorServer(FibTracker(10, SliceCache(100)), debug=True).make_router()
        flask_client = app.test_client()

        def fake_get(url, timeout):
            served = flask_client.get(url.replace('http://fib.local', ''))
            return make_response(served.get_json(), served.status_code)

        client = CursorClient('http://fib.local')
        with patch.object(client.session, 'get', side_effect=fake_get):
            for _ in range(10):
                body = client.next()
            assert body == {'index': 10, 'value': '55'}
            assert sum(client.cache_stats().values()) == 10
        client.close()
