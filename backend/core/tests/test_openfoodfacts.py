import pytest
import requests

from core.exceptions import LookupFailed
from core.models import ProductSource
from core.openfoodfacts import OpenFoodFactsClient, map_nutriments, map_product

NUTELLA = {
    "product_name": "Nutella",
    "brands": "Ferrero, Nutella",
    "image_front_url": "https://images.openfoodfacts.org/nutella.jpg",
    "serving_size": "15 g",
    "nutriscore_grade": "e",
    "nutriments": {
        "energy-kcal_100g": 539,
        "fat_100g": 30.9,
        "saturated-fat_100g": 10.6,
        "carbohydrates_100g": 57.5,
        "sugars_100g": 56.3,
        "proteins_100g": 6.3,
        "salt_100g": 0.107,
        "sodium_100g": 0.0428,
    },
}


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.payload = payload

    def json(self):
        if self.payload is None:
            raise ValueError("No JSON object could be decoded")
        return self.payload


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.urls = []

    def get(self, url, timeout=None, headers=None):
        self.urls.append(url)
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr("core.openfoodfacts.time.sleep", lambda s: None)


def client(*responses):
    return OpenFoodFactsClient(base_url="https://off.test/api/v0/product/", timeout=1,
                               session=FakeSession(*responses), user_agent="nutrisnap-tests")


def test_map_product_converts_units_and_grade():
    product = map_product("3017620422003", NUTELLA)
    assert product.source == ProductSource.OPENFOODFACTS
    assert product.brand == "Ferrero"
    assert product.nutri_score == "E"
    assert product.nutri_score_value == 5
    nutrients = product.get_nutrients()
    assert nutrients.sodium_mg == pytest.approx(42.8)
    assert nutrients.sugar_g == 56.3
    assert nutrients.fiber_g is None


def test_energy_falls_back_to_kilojoules():
    assert map_nutriments({"energy_100g": 418.4}).energy_kcal == pytest.approx(100)
    assert map_nutriments({"energy-kcal_100g": "n/a"}).energy_kcal is None


def test_get_product_found():
    c = client(FakeResponse(payload={"status": 1, "product": NUTELLA}))
    product = c.get_product("3017620422003")
    assert product.name == "Nutella"
    assert c.session.urls == ["https://off.test/api/v0/product/3017620422003.json"]


@pytest.mark.parametrize("response", [
    FakeResponse(404),
    FakeResponse(payload={"status": 0, "status_verbose": "product not found"}),
    FakeResponse(payload={"status": "1", "product": {}}),
])
def test_unknown_barcode_is_none(response):
    assert client(response).get_product("000") is None


def test_transient_error_is_retried():
    c = client(FakeResponse(503), FakeResponse(payload={"status": "1", "product": NUTELLA}))
    assert c.get_product("3017620422003").name == "Nutella"
    assert len(c.session.urls) == 2


def test_persistent_server_error_raises():
    with pytest.raises(LookupFailed, match="status: 500"):
        client(FakeResponse(500), FakeResponse(500)).get_product("1")


def test_network_error_raises_after_retries():
    err = requests.ConnectionError("connection refused")
    with pytest.raises(LookupFailed, match="connection refused"):
        client(err, err).get_product("1")


def test_undecodable_body_raises():
    with pytest.raises(LookupFailed):
        client(FakeResponse(payload=None)).get_product("1")
