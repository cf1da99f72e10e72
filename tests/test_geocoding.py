import pytest
import requests

from utils.geocoding import GeocodingError, address_fields, reverse_geocode


class StubResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


class StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


def test_address_fields_prefers_city_then_town():
    payload = {"display_name": "MI Road, Jaipur", "address": {"town": "Sanganer", "state": "Rajasthan"}}

    assert address_fields(payload) == {"location": "MI Road, Jaipur", "city": "Sanganer", "state": "Rajasthan"}


def test_address_fields_with_missing_address():
    assert address_fields({}) == {"location": "", "city": "", "state": ""}


def test_reverse_geocode_sends_nominatim_params():
    session = StubSession(StubResponse({"display_name": "Here", "address": {"city": "Jaipur", "state": "Rajasthan"}}))

    result = reverse_geocode("26.9124", "75.7873", url="https://geo.test/reverse", user_agent="ua/1", session=session)

    assert result["city"] == "Jaipur"
    url, kwargs = session.calls[0]
    assert url == "https://geo.test/reverse"
    assert kwargs["params"]["format"] == "json"
    assert kwargs["params"]["lat"] == pytest.approx(26.9124)
    assert kwargs["headers"]["Accept-Language"] == "en"
    assert kwargs["headers"]["User-Agent"] == "ua/1"


@pytest.mark.parametrize("lat, lng", [("abc", "75"), ("95", "75"), ("26", "-181"), (None, "75"), ("nan", "75")])
def test_invalid_coordinates_are_rejected(lat, lng):
    with pytest.raises(GeocodingError):
        reverse_geocode(lat, lng, session=StubSession(StubResponse({})))


def test_http_failure_becomes_geocoding_error():
    with pytest.raises(GeocodingError):
        reverse_geocode(26.9, 75.7, session=StubSession(error=requests.ConnectionError("down")))
    with pytest.raises(GeocodingError):
        reverse_geocode(26.9, 75.7, session=StubSession(StubResponse({}, status=503)))
