"""
Test Suite Configuration
"""
import pytest

from discovery.domain.services.search_backends import BackendSelector, FullTextBackend, SubstringBackend

from tests.fakes import (
    AUDIO,
    LAPTOPS,
    Clock,
    FakeProductRepo,
    FakeSearchRepo,
    FakeViewRepo,
    make_product,
)


@pytest.fixture
def catalog() -> FakeProductRepo:
    """Small catalog: phones, laptops, audio, one inactive product"""
    return FakeProductRepo([
        make_product(1, "iPhone 15", price=999.0, rating=4.7, views=5200),
        make_product(2, "Galaxy S24", price=899.0, rating=4.5, views=3100),
        make_product(3, "Pixel 8", price=699.0, rating=4.4, views=800),
        make_product(4, "MacBook Air", category=LAPTOPS, price=1199.0, rating=4.8, views=4100),
        make_product(5, "ThinkPad X1", category=LAPTOPS, price=1499.0, rating=4.2, views=900,
                     discount=15, original_price=1760.0),
        make_product(6, "AirPods Pro", category=AUDIO, price=249.0, rating=4.6, views=7000, discount=25),
        make_product(7, "iPhone 12", price=499.0, rating=4.1, views=12000, is_active=False),
    ])


@pytest.fixture
def search_repo() -> FakeSearchRepo:
    return FakeSearchRepo()


@pytest.fixture
def selector(catalog, search_repo) -> BackendSelector:
    return BackendSelector(
        primary=FullTextBackend(search_repo),
        fallback=SubstringBackend(catalog),
        probe=search_repo.is_available,
    )


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def views(catalog) -> FakeViewRepo:
    return FakeViewRepo(catalog)
