"""Blueprint-backed feature modules and how they get mounted.

A module package exposes ``blueprint``, an optional ``setup_module(app)``
hook and a ``module_metadata`` dict. The metadata decides whether the module
is mounted at all (``enabled``) and where (``url_prefix``); a prefix given on
the definition overrides it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from flask import Blueprint, Flask
from werkzeug.utils import import_string


@dataclass(frozen=True)
class ModuleDefinition:
    """Import path of a feature module plus optional overrides."""

    import_path: str
    attribute: str = "blueprint"
    url_prefix: Optional[str] = None

    def metadata(self) -> dict:
        return dict(getattr(import_string(self.import_path), "module_metadata", {}) or {})

    def is_enabled(self) -> bool:
        return bool(self.metadata().get("enabled", True))

    def resolve_prefix(self) -> Optional[str]:
        return self.url_prefix or self.metadata().get("url_prefix")

    def load_blueprint(self, app: Flask) -> Blueprint:
        """Run the module's setup hook, then hand back its blueprint."""

        package = import_string(self.import_path)
        setup = getattr(package, "setup_module", None)
        if callable(setup):
            setup(app)

        blueprint = getattr(package, self.attribute, None)
        if not isinstance(blueprint, Blueprint):
            raise TypeError(
                f"{self.import_path}.{self.attribute} is {type(blueprint).__name__}, not a Blueprint"
            )
        return blueprint


def register_modules(app: Flask, modules: Iterable[ModuleDefinition]) -> List[str]:
    """Mount every enabled module; returns the blueprint names registered."""

    mounted = []
    for definition in modules:
        if not definition.is_enabled():
            app.logger.info("Module %s is disabled, skipping", definition.import_path)
            continue

        blueprint = definition.load_blueprint(app)
        prefix = definition.resolve_prefix()
        app.register_blueprint(blueprint, url_prefix=prefix)
        mounted.append(blueprint.name)
        app.logger.debug(
            "Mounted %s (%s) at %s",
            definition.import_path,
            definition.metadata().get("name", blueprint.name),
            prefix or "/",
        )
    return mounted


def register_default_modules(app: Flask) -> List[str]:
    return register_modules(app, DEFAULT_MODULES)


DEFAULT_MODULES: Iterable[ModuleDefinition] = (
    ModuleDefinition("bandscore_app.modules.listening"),
)
