import pytest

from helpers import FakeApi
from storefront.config import Settings
from storefront.core.carts.service import CartStore
from storefront.core.promos.reconciler import PromoReconciler
from storefront.storage.memory import MemoryStorage


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def settings():
    return Settings(api_base_url="http://api.test", storage_url="memory://")


@pytest.fixture
def cart(storage):
    return CartStore(storage, key="savage-rise-cart")


@pytest.fixture
def promo(cart, api, storage):
    return PromoReconciler(cart, api, storage, key="savage_rise_promo_code")


@pytest.fixture
def hoodie():
    return {"id": "p1", "name": "Hoodie Savage", "price": 100.0}


@pytest.fixture
def noir():
    return {
        "color": "Noir",
        "sizes": [{"size": "M", "stock": 5}, {"size": "L", "stock": 2}],
        "images": [{"id": "i1", "url": "/img/hoodie-noir.jpg"}],
    }


@pytest.fixture
def blanc():
    return {"color": "Blanc", "sizes": [{"size": "M", "stock": 1}], "images": []}
