"""TOML config loading for cy.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from canary.lexer import DEFAULT_MAX_DEPTH

CONFIG_NAME = "cy.toml"


@dataclass
class PackageConfig:
    name: str = "untitled"
    version: str = "0.0.0"


@dataclass
class ParserConfig:
    max_depth: int = DEFAULT_MAX_DEPTH


@dataclass
class CheckConfig:
    include: list[str] = field(default_factory=lambda: ["*.cy"])


@dataclass
class CyConfig:
    package: PackageConfig = field(default_factory=PackageConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    check: CheckConfig = field(default_factory=CheckConfig)


def find_config(start_path: Path | None = None) -> Path:
    """Walk up directories to find cy.toml. Raises FileNotFoundError."""
    path = (start_path or Path.cwd()).resolve()
    if path.is_file():
        path = path.parent
    while True:
        candidate = path / CONFIG_NAME
        if candidate.exists():
            return candidate
        parent = path.parent
        if parent == path:
            raise FileNotFoundError(f"No {CONFIG_NAME} found in any parent directory")
        path = parent


def load_config(path: Path) -> CyConfig:
    """Parse a cy.toml file into a CyConfig."""
    with open(path, "rb") as f:
        data = tomllib.load(f)

    config = CyConfig()

    if "package" in data:
        pkg = data["package"]
        config.package = PackageConfig(
            name=pkg.get("name", "untitled"),
            version=pkg.get("version", "0.0.0"),
        )

    if "parser" in data:
        prs = data["parser"]
        max_depth = prs.get("max_depth", DEFAULT_MAX_DEPTH)
        if not isinstance(max_depth, int) or max_depth < 1:
            raise ValueError(f"{path}: parser.max_depth must be a positive integer")
        config.parser = ParserConfig(max_depth=max_depth)

    if "check" in data:
        chk = data["check"]
        config.check = CheckConfig(
            include=list(chk.get("include", ["*.cy"])),
        )

    return config
