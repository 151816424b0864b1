#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
DoorbirdClient -- A client for the DoorBird LAN Control API.

All requests go to /bha-api/*.cgi on the device with HTTP basic authentication.
Most responses are JSON objects wrapped in a top-level "BHA" envelope, e.g.:

    {"BHA": {"RETURNCODE": "1", "SESSIONID": "...", "NOTIFICATION_ENCRYPTION_KEY": "..."}}

Requests are synchronous (requests.Session); async callers run them in an executor.
"""

from __future__ import annotations

from enum import Enum

import requests
from requests.auth import HTTPBasicAuth

from .internal_types import *
from .pkg_logging import logger
from .exceptions import ControlApiError
from .constants import DEFAULT_HTTP_TIMEOUT

class Scheme(Enum):
    HTTP = "http"
    HTTPS = "https"

class FavoriteType(Enum):
    SIP = "sip"
    HTTP = "http"

ScheduleInput = str
"""One of "doorbell", "motion" or "rfid"."""

class DoorbirdClient:
    """A synchronous client for the DoorBird Control API."""

    host: str
    username: str
    scheme: Scheme
    timeout: float
    verify_tls: bool
    session: requests.Session

    def __init__(
            self,
            host: str,
            username: str,
            password: str,
            scheme: Union[Scheme, str]=Scheme.HTTP,
            timeout: float=DEFAULT_HTTP_TIMEOUT,
            verify_tls: bool=True,
            session: Optional[requests.Session]=None
          ):
        self.host = host
        self.username = username
        self.scheme = Scheme(scheme)
        self.timeout = timeout
        self.verify_tls = verify_tls
        self.session = requests.Session() if session is None else session
        self.session.auth = HTTPBasicAuth(username, password)

    def __str__(self) -> str:
        return f"DoorbirdClient({self.base_uri})"

    def __repr__(self) -> str:
        return str(self)

    @property
    def base_uri(self) -> str:
        return f"{self.scheme.value}://{self.host}"

    def uri(self, path: str) -> str:
        return f"{self.base_uri}{path}"

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        self.close()
        return False

    def _request(
            self,
            path: str,
            params: Optional[Mapping[str, Union[str, int]]]=None,
            method: str='GET',
            json_data: Optional[Jsonable]=None
          ) -> requests.Response:
        url = self.uri(path)
        logger.debug(f"Control API {method} {url} params={params}")
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json_data,
                timeout=self.timeout,
                verify=self.verify_tls,
              )
            response.raise_for_status()
        except requests.HTTPError as e:
            status_code = None if e.response is None else e.response.status_code
            raise ControlApiError(f"Control API request {path} failed: {e}", status_code=status_code) from e
        except requests.RequestException as e:
            raise ControlApiError(f"Control API request {path} failed: {e}") from e
        return response

    def _request_json(
            self,
            path: str,
            params: Optional[Mapping[str, Union[str, int]]]=None,
            method: str='GET',
            json_data: Optional[Jsonable]=None
          ) -> Any:
        response = self._request(path, params=params, method=method, json_data=json_data)
        try:
            return response.json()
        except ValueError as e:
            raise ControlApiError(f"Control API request {path} returned invalid JSON: {e}", status_code=response.status_code) from e

    # ======================= session

    def initialize_session(self) -> JsonableDict:
        """Opens a session. The BHA envelope contains SESSIONID and, on current firmware,
           NOTIFICATION_ENCRYPTION_KEY (the key for version 2 notifications)."""
        return self._request_json('/bha-api/getsession.cgi')

    def destroy_session(self, session: Union[str, Mapping[str, Any]]) -> JsonableDict:
        """Invalidates a session, given its ID or the response of initialize_session()."""
        if not isinstance(session, str):
            session = session['BHA']['SESSIONID']
        return self._request_json('/bha-api/getsession.cgi', params={'invalidate': session})

    # ======================= device

    def get_info(self) -> JsonableDict:
        return self._request_json('/bha-api/info.cgi')

    def open_door(self, relay: str) -> JsonableDict:
        return self._request_json('/bha-api/open-door.cgi', params={'r': relay})

    def light_on(self) -> JsonableDict:
        return self._request_json('/bha-api/light-on.cgi')

    def restart(self) -> None:
        self._request('/bha-api/restart.cgi')

    # ======================= favorites

    def list_favorites(self) -> JsonableDict:
        """Returns {"sip": {id: {"title":..., "value":...}}, "http": {...}}."""
        return self._request_json('/bha-api/favorites.cgi')

    def create_favorite(self, favorite_type: Union[FavoriteType, str], title: str, value: str) -> None:
        self._save_favorite(FavoriteType(favorite_type), title, value)

    def update_favorite(self, favorite_id: str, favorite_type: Union[FavoriteType, str], title: str, value: str) -> None:
        self._save_favorite(FavoriteType(favorite_type), title, value, favorite_id=favorite_id)

    def _save_favorite(self, favorite_type: FavoriteType, title: str, value: str, favorite_id: Optional[str]=None) -> None:
        params: Dict[str, Union[str, int]] = {
            'action': 'save',
            'type': favorite_type.value,
            'title': title,
            'value': value,
          }
        if favorite_id is not None:
            params['id'] = favorite_id
        self._request('/bha-api/favorites.cgi', params=params)

    def delete_favorite(self, favorite_id: str, favorite_type: Union[FavoriteType, str]) -> None:
        params: Dict[str, Union[str, int]] = {
            'action': 'remove',
            'type': FavoriteType(favorite_type).value,
            'id': favorite_id,
          }
        self._request('/bha-api/favorites.cgi', params=params)

    # ======================= schedule

    def get_schedule(self) -> List[JsonableDict]:
        """Returns the list of schedule entries, each {"input":..., "param":..., "output": {...}}."""
        return self._request_json('/bha-api/schedule.cgi')

    def create_schedule_entry(self, entry: JsonableDict) -> None:
        self.update_schedule_entry(entry)

    def update_schedule_entry(self, entry: JsonableDict) -> None:
        """Creates or replaces the schedule entry for entry["input"] / entry["param"]."""
        self._request('/bha-api/schedule.cgi', method='POST', json_data=entry)

    def delete_schedule_entry(self, schedule_input: ScheduleInput, param: Optional[str]=None) -> None:
        params: Dict[str, Union[str, int]] = {'action': 'remove', 'input': schedule_input}
        if param:
            params['param'] = param
        self._request('/bha-api/schedule.cgi', params=params)

    # ======================= sip

    def sip_registration(self, user: str, password: str, url: str) -> None:
        self._request('/bha-api/sip.cgi', params={'action': 'registration', 'user': user, 'password': password, 'url': url})

    def sip_call(self, url: str) -> None:
        self._request('/bha-api/sip.cgi', params={'action': 'makecall', 'url': url})

    def sip_hangup(self) -> None:
        self._request('/bha-api/sip.cgi', params={'action': 'hangup'})

    def sip_settings(
            self,
            enable: Optional[int]=None,
            mic_volume: Optional[int]=None,
            spk_volume: Optional[int]=None,
            dtmf: Optional[int]=None,
            relay1_passcode: Optional[int]=None,
            incoming_call_enable: Optional[int]=None,
            incoming_call_user: Optional[str]=None,
            anc: Optional[int]=None
          ) -> None:
        """Changes SIP settings. Only settings that are not None are sent."""
        params: Dict[str, Union[str, int]] = {'action': 'settings'}
        settings: Dict[str, Union[str, int, None]] = {
            'enable': enable,
            'mic_volume': mic_volume,
            'spk_volume': spk_volume,
            'dtmf': dtmf,
            'relay1_passcode': relay1_passcode,
            'incoming_call_enable': incoming_call_enable,
            'incoming_call_user': incoming_call_user,
            'anc': anc,
          }
        for name, value in settings.items():
            if value is not None:
                params[name] = value
        self._request('/bha-api/sip.cgi', params=params)

    def sip_status(self) -> JsonableDict:
        return self._request_json('/bha-api/sip.cgi', params={'action': 'status'})

    def sip_settings_reset(self) -> None:
        self._request('/bha-api/sip.cgi', params={'action': 'reset'})
