"""
Configuration module for llm_spider.

Uses Pydantic models for validation and parsing of configuration files.
User overrides are merged field by field over the documented defaults, and
the route list for a run is resolved here.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator

from .errors import ConfigError
from .utils import normalize_route

logger = logging.getLogger(__name__)

DEFAULT_SECTION = "Pages"
DEFAULT_SUMMARY = "LLM-friendly index of important pages and their Markdown equivalents."


class LiteralRule(BaseModel):
    """Matches when the value occurs anywhere in the route or URL."""
    value: str

    model_config = ConfigDict(frozen=True)

    def matches(self, target: str) -> bool:
        return self.value in target

    def __str__(self) -> str:
        return repr(self.value)


class PatternRule(BaseModel):
    """Matches when the regular expression is found in the route or URL."""
    pattern: str
    ignore_case: bool = Field(False, alias="ignoreCase")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    _regex: re.Pattern = PrivateAttr()

    @field_validator("pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"Invalid regex pattern '{value}': {e}")
        return value

    def model_post_init(self, __context: Any) -> None:
        self._regex = re.compile(self.pattern, re.IGNORECASE if self.ignore_case else 0)

    def matches(self, target: str) -> bool:
        return self._regex.search(target) is not None

    def __str__(self) -> str:
        return f"/{self.pattern}/"


ExclusionRule = Union[LiteralRule, PatternRule]


def _coerce_rules(value: Any) -> Any:
    """Accept plain strings as literal rules."""
    if value is None:
        return []
    if isinstance(value, (str, dict, LiteralRule, PatternRule)):
        value = [value]
    rules = []
    for rule in value:
        if isinstance(rule, str):
            rules.append(LiteralRule(value=rule))
        elif isinstance(rule, dict) and "pattern" not in rule and "value" not in rule:
            raise ValueError(f"Rule must be a string or have 'pattern'/'value': {rule}")
        else:
            rules.append(rule)
    return rules


class RouteSpec(BaseModel):
    """A user-declared route with optional index metadata."""
    path: str
    title: Optional[str] = None
    section: Optional[str] = None
    optional: bool = False
    notes: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class CrawlConfig(BaseModel):
    """Breadth-first discovery settings (off by default)."""
    enabled: bool = False
    seeds: List[str] = Field(default_factory=lambda: ["/"])
    max_depth: int = Field(2, alias="maxDepth", ge=0)
    max_pages: int = Field(50, alias="maxPages", ge=1)
    concurrency: int = Field(3, ge=1)
    strip_query: bool = Field(True, alias="stripQuery")

    model_config = ConfigDict(populate_by_name=True)


def _default_block_rules() -> List[ExclusionRule]:
    return [
        PatternRule(pattern=r"google-analytics\.com", ignore_case=True),
        PatternRule(pattern=r"googletagmanager\.com", ignore_case=True),
        PatternRule(pattern=r"segment\.com", ignore_case=True),
        PatternRule(pattern=r"hotjar\.com", ignore_case=True),
    ]


class RenderConfig(BaseModel):
    """Browser rendering settings."""
    wait_until: Literal["commit", "domcontentloaded", "load", "networkidle", "networkidle0", "networkidle2"] = Field(
        "networkidle", alias="waitUntil"
    )
    timeout_ms: int = Field(30_000, alias="timeoutMs", gt=0)
    wait_for_selector: Optional[str] = Field(None, alias="waitForSelector")
    post_load_delay_ms: int = Field(0, alias="postLoadDelayMs", ge=0)
    block_requests: List[ExclusionRule] = Field(default_factory=_default_block_rules, alias="blockRequests")
    headless: bool = True

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("block_requests", mode="before")
    @classmethod
    def _coerce_block_requests(cls, value: Any) -> Any:
        return _coerce_rules(value)

    @property
    def playwright_wait_until(self) -> str:
        """Puppeteer's networkidle0/networkidle2 have a single Playwright equivalent."""
        if self.wait_until in ("networkidle0", "networkidle2"):
            return "networkidle"
        return self.wait_until

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


class ExtractConfig(BaseModel):
    """Noise removal and main-content selection."""
    main_selector: List[str] = Field(
        default_factory=lambda: ["main", "#main-content", "[data-main]"], alias="mainSelector"
    )
    remove_selectors: List[str] = Field(
        default_factory=lambda: [
            "script",
            "style",
            "noscript",
            "nav",
            "header",
            "footer",
            "svg",
            "iframe",
            "[role='alert']",
            ".cookie",
            ".cookie-banner",
            ".modal",
        ],
        alias="removeSelectors",
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("main_selector", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class ConverterOptions(BaseModel):
    """Options handed to the HTML-to-Markdown converter."""
    heading_style: Literal["atx", "setext"] = Field("atx", alias="headingStyle")
    em_delimiter: Literal["_", "*"] = Field("_", alias="emDelimiter")
    bullet_list_marker: Literal["-", "*", "+"] = Field("-", alias="bulletListMarker")

    model_config = ConfigDict(populate_by_name=True)


class MarkdownConfig(BaseModel):
    add_frontmatter: bool = Field(True, alias="addFrontmatter")
    converter_options: ConverterOptions = Field(
        default_factory=ConverterOptions,
        validation_alias=AliasChoices("converter_options", "converterOptions", "turndown"),
    )

    model_config = ConfigDict(populate_by_name=True)


class OutputMode(str, Enum):
    SIBLING = "sibling"
    SUBDIR = "subdir"


class OutputConfig(BaseModel):
    """Layout of generated documents and the index file."""
    mode: OutputMode = OutputMode.SIBLING
    subdir: str = "ai"
    index_file_name: str = Field(
        "llms.txt", validation_alias=AliasChoices("index_file_name", "indexFileName", "llmsTxtFileName")
    )
    title: Optional[str] = Field(None, validation_alias=AliasChoices("title", "llmsTitle"))
    summary: str = Field(DEFAULT_SUMMARY, validation_alias=AliasChoices("summary", "llmsSummary"))
    sort: bool = True

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("subdir")
    @classmethod
    def _clean_subdir(cls, value: str) -> str:
        value = value.replace("\\", "/").strip("/")
        if not value:
            raise ValueError("subdir must not be empty")
        return value


class SpiderConfig(BaseModel):
    """Main configuration class."""
    enabled: bool = True
    routes: Optional[List[RouteSpec]] = None
    crawl: CrawlConfig = Field(default_factory=CrawlConfig)
    exclude: List[ExclusionRule] = Field(
        default_factory=lambda: [LiteralRule(value="/login"), LiteralRule(value="/admin"), LiteralRule(value="/account")]
    )
    render: RenderConfig = Field(default_factory=RenderConfig)
    extract: ExtractConfig = Field(default_factory=ExtractConfig)
    markdown: MarkdownConfig = Field(default_factory=MarkdownConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    static: Union[bool, Literal["auto"]] = "auto"
    log_level: Literal["silent", "info", "debug"] = Field("info", alias="logLevel")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("exclude", mode="before")
    @classmethod
    def _coerce_exclude(cls, value: Any) -> Any:
        return _coerce_rules(value)


@dataclass(frozen=True)
class BuildContext:
    """Resolved build output the pipeline runs against."""
    out_dir: Path
    base_path: str = "/"
    project_name: Optional[str] = None


def _field_name(model_cls: type, key: str) -> Optional[str]:
    """Resolve a user key (field name or any alias) to the model field name."""
    for name, field in model_cls.model_fields.items():
        aliases = {name}
        if field.alias:
            aliases.add(field.alias)
        validation_alias = field.validation_alias
        if isinstance(validation_alias, AliasChoices):
            aliases.update(choice for choice in validation_alias.choices if isinstance(choice, str))
        elif isinstance(validation_alias, str):
            aliases.add(validation_alias)
        if key in aliases:
            return name
    return None


def merge_config(base: BaseModel, overrides: Mapping[str, Any]) -> BaseModel:
    """
    Merge user overrides over a configuration model.

    Nested option groups are merged field by field; lists and scalars replace
    the base value.

    Args:
        base: Configuration model holding the current values
        overrides: User-supplied options (camelCase or snake_case keys)

    Returns:
        New validated model of the same type
    """
    model_cls = type(base)
    values: Dict[str, Any] = {name: getattr(base, name) for name in model_cls.model_fields}

    for key, value in overrides.items():
        name = _field_name(model_cls, key)
        if name is None:
            logger.warning(f"Ignoring unknown configuration option: {key}")
            continue

        current = values[name]
        if isinstance(current, BaseModel) and isinstance(value, Mapping):
            values[name] = merge_config(current, value)
        else:
            values[name] = value

    return model_cls.model_validate(values)


def load_config(config_path: Optional[Union[str, Path]] = None) -> SpiderConfig:
    """
    Load configuration from a JSON file and merge it over the defaults.

    Args:
        config_path: Path to configuration file, or None for defaults

    Returns:
        Validated configuration object

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    defaults = SpiderConfig()
    if config_path is None:
        return defaults

    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read configuration {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be an object: {config_path}")

    try:
        return merge_config(defaults, data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration {config_path}: {e}") from e


def resolve_route_specs(config: SpiderConfig) -> List[RouteSpec]:
    """
    Resolve the declared route list.

    Args:
        config: Spider configuration

    Returns:
        Normalized, deduplicated route specs; empty in pure crawl mode
    """
    if config.routes:
        seen = set()
        specs = []
        for declared in config.routes:
            path = normalize_route(declared.path, strip_query=True) or "/"
            if path in seen:
                logger.debug(f"Skipping duplicate route: {declared.path}")
                continue
            seen.add(path)
            specs.append(declared.model_copy(update={
                "path": path,
                "section": declared.section or DEFAULT_SECTION,
            }))
        return specs

    if config.crawl.enabled:
        return []

    return [RouteSpec(path="/", section=DEFAULT_SECTION)]


def seed_routes(config: SpiderConfig, specs: List[RouteSpec]) -> List[str]:
    """
    Build the initial queue contents.

    Crawl mode seeds from crawl.seeds; explicit mode seeds one entry per spec.

    Args:
        config: Spider configuration
        specs: Route specs from resolve_route_specs

    Returns:
        Normalized seed routes in declaration order
    """
    if not config.crawl.enabled:
        return [spec.path for spec in specs]

    seeds = []
    for seed in config.crawl.seeds or ["/"]:
        route = normalize_route(seed, strip_query=config.crawl.strip_query)
        if route is None:
            logger.debug(f"Dropping seed that is not a page route: {seed}")
            continue
        seeds.append(route)
    return seeds


def use_static_reader(config: SpiderConfig) -> bool:
    """Static reader unless forced off; 'auto' reads files when crawl mode is off."""
    if config.static is True:
        return True
    if config.static is False:
        return False
    return not config.crawl.enabled
