import json

import pytest

from llm_spider.config import (
    LiteralRule,
    OutputMode,
    PatternRule,
    RouteSpec,
    SpiderConfig,
    load_config,
    merge_config,
    resolve_route_specs,
    seed_routes,
    use_static_reader,
)
from llm_spider.errors import ConfigError


def write_config(tmp_path, data):
    path = tmp_path / "llm-spider.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoadConfig:
    """Test suite for configuration loading and merging."""

    def test_defaults_without_file(self):
        config = load_config(None)
        assert config.enabled
        assert config.routes is None
        assert not config.crawl.enabled
        assert config.crawl.max_depth == 2
        assert config.crawl.max_pages == 50
        assert config.crawl.concurrency == 3
        assert config.output.mode is OutputMode.SIBLING
        assert config.output.index_file_name == "llms.txt"
        assert [rule.value for rule in config.exclude] == ["/login", "/admin", "/account"]
        assert config.extract.main_selector == ["main", "#main-content", "[data-main]"]

    def test_nested_merge_keeps_defaults(self, tmp_path):
        path = write_config(tmp_path, {
            "crawl": {"enabled": True, "maxPages": 10},
            "render": {"waitForSelector": "#app main"},
            "output": {"mode": "subdir", "llmsTitle": "Acme"},
        })
        config = load_config(path)

        assert config.crawl.enabled
        assert config.crawl.max_pages == 10
        assert config.crawl.max_depth == 2
        assert config.crawl.strip_query
        assert config.render.wait_for_selector == "#app main"
        assert config.render.timeout_ms == 30_000
        assert len(config.render.block_requests) == 4
        assert config.output.mode is OutputMode.SUBDIR
        assert config.output.subdir == "ai"
        assert config.output.title == "Acme"

    def test_rules_from_strings_and_patterns(self, tmp_path):
        path = write_config(tmp_path, {
            "exclude": ["/private", {"pattern": "^/tmp/\\d+$"}, {"pattern": "draft", "ignoreCase": True}],
        })
        config = load_config(path)

        assert isinstance(config.exclude[0], LiteralRule)
        assert isinstance(config.exclude[1], PatternRule)
        assert config.exclude[2].matches("/DRAFT/x")

    def test_main_selector_string(self, tmp_path):
        path = write_config(tmp_path, {"extract": {"mainSelector": "article"}})
        assert load_config(path).extract.main_selector == ["article"]

    def test_routes(self, tmp_path):
        path = write_config(tmp_path, {"routes": [
            {"path": "/", "title": "Home"},
            {"path": "/changelog", "optional": True, "notes": "Release history"},
        ]})
        config = load_config(path)
        assert config.routes[0] == RouteSpec(path="/", title="Home")
        assert config.routes[1].optional

    def test_unknown_option_is_ignored(self, tmp_path):
        path = write_config(tmp_path, {"crawl": {"enabled": True, "speed": "fast"}})
        assert load_config(path).crawl.enabled

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_invalid_values(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(write_config(tmp_path, {"crawl": {"concurrency": 0}}))
        with pytest.raises(ConfigError):
            load_config(write_config(tmp_path, {"exclude": [{"pattern": "(unclosed"}]}))
        with pytest.raises(ConfigError):
            load_config(write_config(tmp_path, {"output": {"mode": "flat"}}))

    def test_merge_config_replaces_lists(self):
        config = merge_config(SpiderConfig(), {"extract": {"removeSelectors": [".ad"]}})
        assert config.extract.remove_selectors == [".ad"]
        assert config.extract.main_selector == ["main", "#main-content", "[data-main]"]

    def test_wait_until_mapping(self):
        config = merge_config(SpiderConfig(), {"render": {"waitUntil": "networkidle2"}})
        assert config.render.playwright_wait_until == "networkidle"
        config = merge_config(SpiderConfig(), {"render": {"waitUntil": "domcontentloaded"}})
        assert config.render.playwright_wait_until == "domcontentloaded"


class TestRouteSource:
    """Test suite for route resolution."""

    def test_default_single_route(self):
        config = SpiderConfig()
        specs = resolve_route_specs(config)
        assert specs == [RouteSpec(path="/", section="Pages")]
        assert seed_routes(config, specs) == ["/"]

    def test_explicit_routes(self):
        config = merge_config(SpiderConfig(), {"routes": [
            {"path": "pricing?plan=pro", "section": "Product"},
            {"path": "/docs/#intro"},
            {"path": "/pricing"},
            {"path": "mailto:x@example.com"},
        ]})
        specs = resolve_route_specs(config)

        assert [spec.path for spec in specs] == ["/pricing", "/docs/", "/"]
        assert specs[0].section == "Product"
        assert specs[1].section == "Pages"
        assert seed_routes(config, specs) == ["/pricing", "/docs/", "/"]

    def test_crawl_mode_seeds(self):
        config = merge_config(SpiderConfig(), {"crawl": {"enabled": True, "seeds": ["/", "docs?x=1", "tel:123"]}})
        specs = resolve_route_specs(config)
        assert specs == []
        assert seed_routes(config, specs) == ["/", "/docs"]

    def test_crawl_mode_keeps_query_when_asked(self):
        config = merge_config(SpiderConfig(), {"crawl": {"enabled": True, "seeds": ["/search?q=a"], "stripQuery": False}})
        assert seed_routes(config, []) == ["/search?q=a"]

    def test_crawl_mode_with_route_metadata(self):
        config = merge_config(SpiderConfig(), {
            "crawl": {"enabled": True},
            "routes": [{"path": "/pricing", "title": "Plans"}],
        })
        specs = resolve_route_specs(config)
        assert specs[0].title == "Plans"
        assert seed_routes(config, specs) == ["/"]

    def test_static_reader_selection(self):
        assert use_static_reader(SpiderConfig())
        crawl = merge_config(SpiderConfig(), {"crawl": {"enabled": True}})
        assert not use_static_reader(crawl)
        assert use_static_reader(merge_config(crawl, {"static": True}))
        assert not use_static_reader(merge_config(SpiderConfig(), {"static": False}))
