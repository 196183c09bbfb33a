"""Seed site configuration loading."""

import json

import pytest

from compscout.schemas.listing import SiteType
from compscout.services.seeds import DEFAULT_SEED_SITES, SeedConfigError, load_seed_config, parse_seed_sites


def test_defaults_without_path():
    config = load_seed_config(None)

    assert config.sites == DEFAULT_SEED_SITES
    assert config.source == "default (built-in)"
    assert {site.type for site in config.sites} == set(SiteType)


def test_missing_file_falls_back(tmp_path):
    path = tmp_path / "nope.json"

    config = load_seed_config(str(path))

    assert config.sites == DEFAULT_SEED_SITES
    assert config.source == f"default (built-in, file not found: {path})"


def test_file_with_some_invalid_entries(tmp_path):
    path = tmp_path / "seeds.json"
    path.write_text(
        json.dumps(
            [
                {"name": "Brand", "url": "https://brand.example/win", "type": "brand"},
                {"name": "No url", "type": "brand"},
                {"name": "Bad type", "url": "https://x.example/", "type": "blog"},
                {"name": "Relative", "url": "/win", "type": "forum"},
            ]
        ),
        encoding="utf-8",
    )

    config = load_seed_config(str(path))

    assert [site.name for site in config.sites] == ["Brand"]
    assert config.source.startswith("file (")
    assert config.source.endswith("loaded 1 sites)")


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        '{"name": "object not array"}',
        '[{"name": "x"}]',
    ],
)
def test_unusable_file_falls_back(tmp_path, content):
    path = tmp_path / "seeds.json"
    path.write_text(content, encoding="utf-8")

    config = load_seed_config(str(path))

    assert config.sites == DEFAULT_SEED_SITES
    assert config.source == f"default (built-in, error loading {path})"


def test_undecodable_file_falls_back(tmp_path):
    path = tmp_path / "seeds.json"
    path.write_bytes(b'[{"name": "\xff\xfe", "url": "https://brand.example/win", "type": "brand"}]')

    config = load_seed_config(str(path))

    assert config.sites == DEFAULT_SEED_SITES
    assert config.source == f"default (built-in, error loading {path})"


def test_empty_array_is_valid():
    assert parse_seed_sites("[]") == []


def test_all_invalid_raises():
    with pytest.raises(SeedConfigError):
        parse_seed_sites('[{"url": "ftp://x.example"}]')
