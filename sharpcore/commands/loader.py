"""Command unit discovery and import.

Two ways in:
    scan_directory: walk a directory of ``*.py`` files, subdirectories
        naming categories (``commands/utility/ping.py`` → "Utility").
    import_modules: import an explicit list of dotted module paths.

Both validate every module against the unit contract (``info`` with a
string ``name``, callable ``run``) and raise CommandLoadError on the
first violation. Nothing is registered here; the registry does that.
"""

import importlib
import importlib.util
import sys
from pathlib import Path
from types import ModuleType
from typing import Iterable, List, Mapping, Optional

import structlog
from pydantic import ValidationError

from ..exceptions import CommandLoadError
from .base import CommandInfo, CommandUnit

logger = structlog.get_logger("sharpcore.commands")

# Namespace for modules imported from a scanned directory
SCAN_NAMESPACE = "sharpcore_units"


def _category_from(name: Optional[str]) -> str:
    if not name:
        return "General"
    return name.replace("_", " ").title()


def unit_from_module(
    module: ModuleType, source: str, category: Optional[str] = None
) -> CommandUnit:
    """Build a CommandUnit from a module honoring the unit contract.

    Raises:
        CommandLoadError: If ``info`` or ``run`` is missing or invalid.
    """
    raw_info = getattr(module, "info", None)
    if raw_info is None:
        raise CommandLoadError(
            f"Command unit {source} does not define 'info'", source=source
        )

    if isinstance(raw_info, CommandInfo):
        info = raw_info
        if category and "category" not in raw_info.model_fields_set:
            info = raw_info.model_copy(update={"category": _category_from(category)})
    elif isinstance(raw_info, Mapping):
        name = raw_info.get("name")
        if not isinstance(name, str):
            raise CommandLoadError(
                f"Command unit {source} has no string 'info.name'", source=source
            )
        data = dict(raw_info)
        if category:
            data.setdefault("category", _category_from(category))
        try:
            info = CommandInfo(**data)
        except ValidationError as e:
            raise CommandLoadError(
                f"Command unit {source} has invalid info: {e}", source=source
            ) from e
    else:
        raise CommandLoadError(
            f"Command unit {source} 'info' must be a mapping or CommandInfo, "
            f"got {type(raw_info).__name__}",
            source=source,
        )

    run = getattr(module, "run", None)
    if not callable(run):
        raise CommandLoadError(
            f"Command unit {source} does not define a callable 'run'",
            source=source,
        )

    return CommandUnit(info=info, execute=run, source=source)


def _load_file(path: Path, module_name: str) -> ModuleType:
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise CommandLoadError(f"Cannot import {path}", source=str(path))
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise CommandLoadError(
            f"Command unit {path} failed to import: {type(e).__name__}: {e}",
            source=str(path),
        ) from e
    return module


def scan_directory(directory: Path) -> List[CommandUnit]:
    """Load every command unit under ``directory``.

    Files and directories starting with ``_`` or ``.`` are skipped.
    Order is deterministic (sorted paths).
    """
    if not directory.is_dir():
        raise CommandLoadError(
            f"Commands directory {directory} does not exist", source=str(directory)
        )

    units = []
    for path in sorted(directory.rglob("*.py")):
        rel = path.relative_to(directory)
        if any(part.startswith(("_", ".")) for part in rel.parts):
            continue
        category = rel.parts[0] if len(rel.parts) > 1 else None
        dotted = ".".join(p.replace("-", "_") for p in rel.with_suffix("").parts)
        module = _load_file(path, f"{SCAN_NAMESPACE}.{dotted}")
        units.append(unit_from_module(module, source=str(rel), category=category))

    logger.info("command_directory_scanned", path=str(directory), units=len(units))
    return units


def import_modules(module_names: Iterable[str], reload: bool = False) -> List[CommandUnit]:
    """Load command units from dotted module paths.

    The category is the module's parent package name
    (``sharpcore.commands.utility.ping`` → "Utility").
    """
    units = []
    for name in module_names:
        try:
            module = importlib.import_module(name)
            if reload:
                module = importlib.reload(module)
        except Exception as e:
            raise CommandLoadError(
                f"Command module {name} failed to import: {type(e).__name__}: {e}",
                source=name,
            ) from e
        parts = name.rsplit(".", 2)
        category = parts[-2] if len(parts) > 1 else None
        units.append(unit_from_module(module, source=name, category=category))
    return units
