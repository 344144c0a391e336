# simulator_client.py
# HTTP client for the simulator's external key/value API.
import copy
import requests

from errors import (InvalidApiKey, SimulatorHttpError, SimulatorRequestFailed,
                    NoValueReturned, UnparseableValue)

DEFAULT_BASE_URL = "http://localhost:31270"
API_KEY_HEADER = "DTGCommKey"
FAST_TIMEOUT = 0.5


class SimulatorClient:
    def __init__(self, base_url=DEFAULT_BASE_URL, api_key="", timeout=2.0, session=None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers[API_KEY_HEADER] = api_key

    @classmethod
    def from_config(cls, config):
        sim = config.get("simulator", {})
        return cls(sim.get("base_url", DEFAULT_BASE_URL), sim.get("api_key", ""), sim.get("timeout", 2.0))

    def with_fast_timeouts(self):
        """Copy sharing the HTTP session but giving up quickly, for per-tick writes."""
        fast = copy.copy(self)
        fast.timeout = FAST_TIMEOUT
        return fast

    def _request(self, method, url, **kwargs):
        try:
            response = self.session.request(method, f"{self.base_url}{url}", timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise SimulatorRequestFailed(e) from e
        try:
            body = response.json()
        except ValueError:
            body = response.text
        if response.status_code == 403:
            raise InvalidApiKey(body)
        if not 200 <= response.status_code < 300:
            raise SimulatorHttpError(response.status_code, body)
        return body

    def info(self):
        return self._request("GET", "/info")

    def list(self, path=None):
        return self._request("GET", f"/list/{path}" if path else "/list")

    def get(self, path):
        return self._request("GET", f"/get/{path}")

    def set(self, path, value):
        return self._request("PATCH", f"/set/{path}", params={"Value": value})

    def get_value(self, path):
        values = self.get(path).get("Values") or {}
        if not values:
            raise NoValueReturned(f"No value returned for {path}")
        return next(iter(values.values()))

    def get_float(self, path):
        value = self.get_value(path)
        try:
            return float(value)
        except (TypeError, ValueError):
            raise UnparseableValue(f"{path} returned non-numeric value {value!r}")

    def get_int(self, path):
        return int(self.get_float(path))

    def get_string(self, path):
        return str(self.get_value(path))
