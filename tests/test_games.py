"""Tests for the game registry and catalog loading."""

from pathlib import Path

import pytest

from savekeep.config.schema import GameConfig, SaveKeepConfig
from savekeep.games.models import Game
from savekeep.games.registry import CATALOG_DIRNAME, CatalogError, GameRegistry, build_registry


@pytest.fixture
def catalog_root(tmp_path: Path) -> Path:
    catalogs = tmp_path / CATALOG_DIRNAME
    catalogs.mkdir()
    (catalogs / "indie.yaml").write_text(
        "Celeste:\n"
        "  files: ['~/.local/share/Celeste/Saves']\n"
        "Hades:\n"
        "  files: ['~/Hades/Saves']\n"
        "  registry: ['HKEY_CURRENT_USER/Software/Supergiant/Hades']\n"
    )
    (catalogs / "list.yml").write_text(
        "- name: Stardew Valley\n"
        "  files: ['~/.config/StardewValley/Saves']\n"
        "  enabled: false\n"
    )
    (catalogs / "notes.txt").write_text("not a catalog")
    return tmp_path


class TestGameRegistry:
    def test_register_and_get(self):
        registry = GameRegistry()
        registry.register(Game(name="B"))
        registry.register(Game(name="A"))
        assert [g.name for g in registry.all_games] == ["A", "B"]
        assert registry.get("A").name == "A"
        assert registry.get("missing") is None

    def test_select(self):
        registry = GameRegistry()
        registry.register_many([Game(name="A"), Game(name="B")])
        games, unknown = registry.select(["B", "Nope"])
        assert [g.name for g in games] == ["B"]
        assert unknown == ["Nope"]
        assert len(registry.select([])[0]) == 2

    def test_enable_list(self):
        registry = GameRegistry()
        registry.register_many([Game(name="A"), Game(name="B")])
        config = SaveKeepConfig()
        config.games_filter.enable = ["A"]
        registry.apply_config(config)
        assert [g.name for g in registry.enabled_games()] == ["A"]

    def test_disable_list_wins(self):
        registry = GameRegistry()
        registry.register_many([Game(name="A"), Game(name="B")])
        config = SaveKeepConfig()
        config.games_filter.enable = ["A", "B"]
        config.games_filter.disable = ["B"]
        registry.apply_config(config)
        assert [g.name for g in registry.enabled_games()] == ["A"]


class TestCatalogs:
    def test_mapping_and_list_forms(self, catalog_root: Path):
        registry = GameRegistry()
        assert registry.load_catalogs(catalog_root / CATALOG_DIRNAME) == 3
        hades = registry.get("Hades")
        assert hades.has_registry
        assert hades.source.endswith("indie.yaml")
        assert not registry.get("Stardew Valley").enabled

    def test_missing_directory(self, tmp_path: Path):
        assert GameRegistry().load_catalogs(tmp_path / "nothing") == 0

    def test_bad_yaml(self, tmp_path: Path):
        (tmp_path / "bad.yaml").write_text("name: [unclosed\n")
        with pytest.raises(CatalogError):
            GameRegistry().load_catalogs(tmp_path)

    def test_entry_without_name(self, tmp_path: Path):
        (tmp_path / "bad.yaml").write_text("- files: ['/x']\n")
        with pytest.raises(CatalogError):
            GameRegistry().load_catalogs(tmp_path)

    def test_scalar_catalog(self, tmp_path: Path):
        (tmp_path / "bad.yaml").write_text("just a string\n")
        with pytest.raises(CatalogError):
            GameRegistry().load_catalogs(tmp_path)


class TestBuildRegistry:
    def test_config_games_override_catalog(self, catalog_root: Path):
        config = SaveKeepConfig(games=[GameConfig(name="Celeste", files=["/custom/celeste"])])
        registry = build_registry(config, catalog_root)
        assert registry.get("Celeste").files == ["/custom/celeste"]
        assert registry.get("Celeste").source == "config"
        assert registry.get("Hades") is not None

    def test_filters_applied(self, catalog_root: Path):
        config = SaveKeepConfig()
        config.games_filter.disable = ["Hades"]
        registry = build_registry(config, catalog_root)
        assert [g.name for g in registry.enabled_games()] == ["Celeste"]
