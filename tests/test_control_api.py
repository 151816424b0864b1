"""Tests for the Control API client, using a mocked requests session."""
from unittest import mock

import pytest
import requests
from requests.auth import HTTPBasicAuth

from doorbird_lan_api import DoorbirdClient, ControlApiError, FavoriteType, Scheme


def make_client(json_result=None, scheme=Scheme.HTTP):
    response = mock.Mock()
    response.status_code = 200
    response.json.return_value = json_result
    session = mock.Mock()
    session.request.return_value = response
    client = DoorbirdClient('192.168.1.50', 'ghabcd0001', 'secret', scheme=scheme, session=session)
    return client, session


def request_args(session):
    args, kwargs = session.request.call_args
    return args[0], args[1], kwargs


def test_basic_auth():
    client, session = make_client()

    assert isinstance(session.auth, HTTPBasicAuth)
    assert session.auth.username == 'ghabcd0001'
    assert session.auth.password == 'secret'


def test_initialize_session():
    result = {'BHA': {'RETURNCODE': '1', 'SESSIONID': 'abc', 'NOTIFICATION_ENCRYPTION_KEY': 'k' * 40}}
    client, session = make_client(result)

    assert client.initialize_session() == result
    method, url, kwargs = request_args(session)
    assert method == 'GET'
    assert url == 'http://192.168.1.50/bha-api/getsession.cgi'
    assert kwargs['params'] is None


def test_destroy_session_from_response():
    client, session = make_client({'BHA': {'RETURNCODE': '1'}})

    client.destroy_session({'BHA': {'SESSIONID': 'abc'}})

    method, url, kwargs = request_args(session)
    assert url == 'http://192.168.1.50/bha-api/getsession.cgi'
    assert kwargs['params'] == {'invalidate': 'abc'}


def test_https_scheme():
    client, session = make_client({}, scheme='https')

    client.get_info()

    method, url, kwargs = request_args(session)
    assert url == 'https://192.168.1.50/bha-api/info.cgi'
    assert kwargs['verify'] is True


def test_open_door():
    client, session = make_client({'BHA': {'RETURNCODE': '1'}})

    client.open_door('2')

    method, url, kwargs = request_args(session)
    assert url == 'http://192.168.1.50/bha-api/open-door.cgi'
    assert kwargs['params'] == {'r': '2'}


def test_favorites():
    client, session = make_client()

    client.create_favorite(FavoriteType.HTTP, 'Home', 'http://example.com/hook')
    method, url, kwargs = request_args(session)
    assert url == 'http://192.168.1.50/bha-api/favorites.cgi'
    assert kwargs['params'] == {'action': 'save', 'type': 'http', 'title': 'Home', 'value': 'http://example.com/hook'}

    client.update_favorite('3', 'sip', 'Phone', 'sip:1@example.com')
    method, url, kwargs = request_args(session)
    assert kwargs['params'] == {'action': 'save', 'type': 'sip', 'title': 'Phone', 'value': 'sip:1@example.com', 'id': '3'}

    client.delete_favorite('3', 'sip')
    method, url, kwargs = request_args(session)
    assert kwargs['params'] == {'action': 'remove', 'type': 'sip', 'id': '3'}


def test_schedule():
    client, session = make_client([])
    entry = {'input': 'doorbell', 'param': '1', 'output': []}

    client.update_schedule_entry(entry)
    method, url, kwargs = request_args(session)
    assert method == 'POST'
    assert url == 'http://192.168.1.50/bha-api/schedule.cgi'
    assert kwargs['json'] == entry

    client.delete_schedule_entry('motion')
    method, url, kwargs = request_args(session)
    assert kwargs['params'] == {'action': 'remove', 'input': 'motion'}

    client.delete_schedule_entry('doorbell', '1')
    method, url, kwargs = request_args(session)
    assert kwargs['params'] == {'action': 'remove', 'input': 'doorbell', 'param': '1'}


def test_sip_settings_sends_only_given_values():
    """Zero is a real setting and must be sent."""
    client, session = make_client()

    client.sip_settings(enable=1, mic_volume=0)

    method, url, kwargs = request_args(session)
    assert url == 'http://192.168.1.50/bha-api/sip.cgi'
    assert kwargs['params'] == {'action': 'settings', 'enable': 1, 'mic_volume': 0}


def test_http_error():
    client, session = make_client()
    response = session.request.return_value
    response.status_code = 401
    response.raise_for_status.side_effect = requests.HTTPError("401 Unauthorized", response=response)

    with pytest.raises(ControlApiError) as exc_info:
        client.get_info()
    assert exc_info.value.status_code == 401


def test_connection_error():
    client, session = make_client()
    session.request.side_effect = requests.ConnectionError("connection refused")

    with pytest.raises(ControlApiError) as exc_info:
        client.light_on()
    assert exc_info.value.status_code is None


def test_invalid_json():
    client, session = make_client()
    session.request.return_value.json.side_effect = ValueError("Expecting value")

    with pytest.raises(ControlApiError):
        client.sip_status()


def test_context_manager_closes_session():
    client, session = make_client()

    with client:
        pass

    session.close.assert_called_once_with()


def test_create_schedule_entry_posts_entry():
    client, session = make_client()
    entry = {'input': 'motion', 'param': '', 'output': [{'event': 'http', 'param': '0', 'enabled': '1'}]}

    client.create_schedule_entry(entry)

    method, url, kwargs = request_args(session)
    assert method == 'POST'
    assert kwargs['json'] == entry


def test_sip_actions():
    client, session = make_client()

    client.sip_call('sip:100@example.com')
    assert request_args(session)[2]['params'] == {'action': 'makecall', 'url': 'sip:100@example.com'}

    client.sip_hangup()
    assert request_args(session)[2]['params'] == {'action': 'hangup'}

    client.sip_settings_reset()
    assert request_args(session)[2]['params'] == {'action': 'reset'}
