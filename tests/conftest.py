"""Shared test fixtures and configuration."""

import os
from pathlib import Path

import pytest

from docsite_search.config import SearchSettings
from docsite_search.domain.model import Document
from docsite_search.search.indexer import IndexBuilder


FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"

DUST_LAW_CORPUS = [
    {
        "title": "CCM89",
        "text": "Clayton Cardelli Mathis dust law",
        "category": "page",
        "page": "p1",
        "location": "p1#ccm89",
    },
    {
        "title": "OD94",
        "text": "O'Donnell dust law",
        "category": "page",
        "page": "p1",
        "location": "p1#od94",
    },
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Drop DOCSITE_SEARCH_* variables so settings always start from defaults."""
    for key in list(os.environ):
        if key.upper().startswith("DOCSITE_SEARCH_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings() -> SearchSettings:
    return SearchSettings()


@pytest.fixture
def dust_law_index(settings):
    return IndexBuilder(settings).build(DUST_LAW_CORPUS)


@pytest.fixture
def docs_corpus() -> list[Document]:
    """A small site: two pages with sections and docstring entries."""
    return [
        Document(location="laws/", page="Color Laws", title="Color Laws", category="page",
                 text="Empirical laws model the reddening of light. CCM89 is common for stellar observations."),
        Document(location="laws/#usage", page="Color Laws", title="Usage", category="section", text=""),
        Document(location="laws/#CCM89", page="Color Laws", title="DustExtinction.CCM89", category="type",
                 text="Clayton, Cardelli and Mathis (1989) dust law."),
        Document(location="laws/#OD94", page="Color Laws", title="DustExtinction.OD94", category="type",
                 text="O'Donnell (1994) dust law. This is identical to CCM89 except for the optical coefficients."),
        Document(location="maps/", page="Dust Maps", title="Dust Maps", category="page",
                 text="Dust maps give reddening as a function of galactic coordinates."),
        Document(location="maps/#SFD98Map", page="Dust Maps", title="DustExtinction.SFD98Map", category="type",
                 text="Schlegel, Finkbeiner and Davis (1998) dust map."),
    ]


@pytest.fixture
def documenter_fixture_path() -> Path:
    return FIXTURES_DIR / "search_index.js"


@pytest.fixture
def dust_law_corpus() -> list[dict[str, str]]:
    return [dict(record) for record in DUST_LAW_CORPUS]
