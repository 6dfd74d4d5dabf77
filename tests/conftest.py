import pytest

from kg_expander.core.domains.catalog import DEFAULT_CATALOGS


@pytest.fixture()
def perfume():
    return DEFAULT_CATALOGS["perfume"]


@pytest.fixture()
def wine():
    return DEFAULT_CATALOGS["wine"]
