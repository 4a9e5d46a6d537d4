import json
import time as _time
from types import MappingProxyType
from typing import Any, NamedTuple
from urllib.parse import urlencode

import requests

from . import config
from .config import logger
from .utils import (
    DAY_SECONDS,
    bytes_to_gb,
    format_server_url,
    gb_to_bytes,
    generate_user_id,
    random_string,
    with_usage_fields,
)


# Inbound tags created by a stock panel install, per proxy protocol
INBOUNDS = MappingProxyType({
    'vmess': ('VMess TCP', 'VMess Websocket'),
    'vless': ('VLESS TCP REALITY', 'VLESS GRPC REALITY'),
    'shadowsocks': ('Shadowsocks TCP',),
})

SHADOWSOCKS_METHOD = 'chacha20-ietf-poly1305'

JSON_CONTENT = 'application/json'
FORM_CONTENT = 'application/x-www-form-urlencoded'


class PanelResponse(NamedTuple):
    status: int
    data: Any

    @property
    def ok(self) -> bool:
        return self.status == 200


class PanelAPI:
    """
    Synchronous client for the panel REST API.

    Every operation returns a PanelResponse; transport problems are reported as
    status 500 and calls made without a token as status 401, no exceptions.
    """

    def __init__(self, host: str, ip: str = '', username: str = '', password: str = '',
                 timeout: float | None = None):
        self.host = format_server_url(host)
        self.ip = format_server_url(ip)
        self.timeout = config.REQUEST_TIMEOUT if timeout is None else timeout
        self.session = requests.Session()
        self.access_token = None
        self._system = None

        self.access_token = self.authenticate(username, password)
        snapshot = self._send_request('system')
        if snapshot.ok:
            self._system = snapshot.data

    @classmethod
    def from_env(cls, **kwargs):
        return cls(config.PANEL_HOST, config.PANEL_IP, config.PANEL_USERNAME, config.PANEL_PASSWORD, **kwargs)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        self.session.close()

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    @property
    def base_url(self) -> str:
        # Direct IP wins over the hostname when configured
        return self.ip or self.host

    def authenticate(self, username: str, password: str) -> str | None:
        """Request an access token; returns None on any failure."""
        body = urlencode({'username': username, 'password': password})
        resp = self._send_request('admin/token', body, 'POST', require_auth=False, content_type=FORM_CONTENT)
        if resp.status != 200:
            logger.error(f"Panel login failed for {self.base_url}: {resp.status}")
            return None
        token = resp.data.get('access_token') if isinstance(resp.data, dict) else None
        if not isinstance(token, str):
            logger.error(f"Panel login at {self.base_url} returned no access_token")
            return None
        logger.info(f"Successfully authenticated to panel {self.base_url}")
        return token

    def system(self) -> PanelResponse:
        if self._system is not None:
            return PanelResponse(200, self._system)
        return self._send_request('system')

    def get_users(self) -> PanelResponse:
        return self._send_request('users')

    def get_user(self, username: str) -> PanelResponse:
        resp = self._send_request(f"user/{username}")
        if not resp.ok or not isinstance(resp.data, dict):
            return resp
        return PanelResponse(200, with_usage_fields(resp.data, int(_time.time())))

    def delete_user(self, username: str) -> PanelResponse:
        resp = self._send_request(f"user/{username}", method='DELETE')
        if resp.ok:
            logger.info(f"Deleted panel user {username}")
        return resp

    def add_user(self, username: str, volume: float, days: int, status: bool = True, note: str = '',
                 on_hold: bool = False, vmess: bool = True, vless: bool = True,
                 shadowsocks: bool = True) -> PanelResponse:
        """
        Create a user with `volume` GB for `days` days.

        `status` picks "active"/"on_hold" for the status field, while `on_hold`
        defers the expiry clock; the two are applied independently.
        """
        now = int(_time.time())
        duration = int(days) * DAY_SECONDS
        if on_hold:
            expire = 0
            on_hold_timeout = now + duration
            on_hold_expire_duration = duration
        else:
            expire = now + duration if days > 0 else 0
            on_hold_timeout = None
            on_hold_expire_duration = None

        user_data = {
            "username": username,
            "proxies": self.proxies(vmess, vless, shadowsocks),
            "inbounds": self.inbounds(vmess, vless, shadowsocks),
            "expire": expire,
            "data_limit": gb_to_bytes(volume),
            "data_limit_reset_strategy": "no_reset",
            "status": "active" if status else "on_hold",
            "note": note,
            "on_hold_timeout": on_hold_timeout,
            "on_hold_expire_duration": on_hold_expire_duration,
        }
        resp = self._send_request('user', json.dumps(user_data), 'POST')
        if resp.ok:
            logger.info(f"Created panel user {username} ({volume} GB, {days} days, on_hold={on_hold})")
        return resp

    def edit_user(self, username: str, update: dict) -> PanelResponse:
        """
        Merge `update` over the current user and PUT it back.

        Recognised keys: status, toggle_status, expire, add_days, volume (GB),
        add_volume (GB), data_limit_reset_strategy, note.
        A status that is not a bool counts as false. Non-numeric expire or
        volume values raise ValueError.
        """
        current = self.get_user(username)
        if not current.ok:
            return current
        user = current.data

        if 'status' in update:
            active = update['status'] is True
        else:
            active = user.get('status') == 'active'
        if update.get('toggle_status'):
            active = not active

        expire = int(update['expire'] or 0) if 'expire' in update else int(user.get('expire') or 0)
        expire += int(update.get('add_days') or 0) * DAY_SECONDS

        if 'volume' in update:
            data_limit = gb_to_bytes(update['volume'])
        else:
            data_limit = user.get('data_limit') or 0
        data_limit += gb_to_bytes(update.get('add_volume') or 0)

        user_data = {
            "proxies": user.get('proxies'),
            "inbounds": user.get('inbounds'),
            "expire": expire,
            "data_limit": data_limit,
            "data_limit_reset_strategy": update.get('data_limit_reset_strategy', user.get('data_limit_reset_strategy')),
            "status": "active" if active else "disabled",
            "note": update.get('note', user.get('note')),
            "on_hold_timeout": user.get('on_hold_timeout'),
            "on_hold_expire_duration": user.get('on_hold_expire_duration'),
        }
        resp = self._send_request(f"user/{username}", json.dumps(user_data), 'PUT')
        if resp.ok:
            logger.info(f"Updated panel user {username}: status={user_data['status']} expire={expire} data_limit={bytes_to_gb(data_limit)} GB")
        return resp

    def reset_user_traffic(self, username: str) -> PanelResponse:
        return self._send_request(f"user/{username}/reset", method='POST')

    def revoke_user_sub(self, username: str) -> PanelResponse:
        return self._send_request(f"user/{username}/revoke", method='POST')

    def sub_info(self, sub_link: str) -> PanelResponse:
        return self._send_request(f"sub/{sub_link}/info")

    def proxies(self, vmess: bool, vless: bool, shadowsocks: bool) -> dict:
        proxies = {}
        if vmess:
            proxies['vmess'] = {"id": generate_user_id()}
        if vless:
            proxies['vless'] = {"id": generate_user_id(), "flow": ""}
        if shadowsocks:
            proxies['shadowsocks'] = {"password": random_string(6), "method": SHADOWSOCKS_METHOD}
        return proxies

    def inbounds(self, vmess: bool, vless: bool, shadowsocks: bool) -> dict:
        selected = {'vmess': vmess, 'vless': vless, 'shadowsocks': shadowsocks}
        return {protocol: list(INBOUNDS[protocol]) for protocol, enabled in selected.items() if enabled}

    def _send_request(self, path: str, data: str | None = None, method: str = 'GET',
                      require_auth: bool = True, content_type: str | None = None) -> PanelResponse:
        if require_auth and self.access_token is None:
            logger.warning(f"Skipping {method} {path}: not authenticated to panel {self.host}")
            return PanelResponse(401, {})

        url = f"{self.base_url}{path}"
        headers = {'accept': 'application/json'}
        if self.access_token is not None:
            headers['Authorization'] = f'Bearer {self.access_token}'
        if data is not None:
            if content_type is None:
                content_type = JSON_CONTENT if method in ('POST', 'PUT') else FORM_CONTENT
            headers['Content-Type'] = content_type

        try:
            r = self.session.request(method, url, data=data, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Panel request {method} {url} failed: {e}")
            return PanelResponse(500, {})

        try:
            body = r.json()
        except ValueError:
            logger.warning(f"Panel {method} {url} <- {r.status_code} non-JSON body preview={(r.text or '')[:200]!r}")
            body = {}
        return PanelResponse(r.status_code, body)
