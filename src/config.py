"""Unified configuration loaded from .storyhub.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from storyhub.integrations.storage import DEFAULT_PREVIEW_WIDTH, DEFAULT_ROOT_FOLDER

if TYPE_CHECKING:
    from storyhub.stories.services import StoryService

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".storyhub.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG = Path.home() / ".config" / "storyhub" / "config.toml"


class StoreSectionConfig(BaseModel):
    """[store] section."""

    directory: str = "./data"
    max_save_retries: int = Field(default=3, ge=1)


class CloudinarySectionConfig(BaseModel):
    """[storage.cloudinary] section."""

    cloud_name: str = ""
    api_key: str = ""
    api_secret: str = ""
    timeout: int = 60


class StorageSectionConfig(BaseModel):
    """[storage] section.

    ``backend`` is ``"local"`` (files under ``directory``) or
    ``"cloudinary"`` (credentials in ``[storage.cloudinary]``)::

        [storage]
        backend = "cloudinary"
        preview_width = 640

        [storage.cloudinary]
        cloud_name = "demo"
    """

    backend: str = "local"
    directory: str = "./media"
    base_url: str = ""
    root_folder: str = DEFAULT_ROOT_FOLDER
    preview_width: int = Field(default=DEFAULT_PREVIEW_WIDTH, gt=0)
    cloudinary: CloudinarySectionConfig = Field(default_factory=CloudinarySectionConfig)


class ReferencesSectionConfig(BaseModel):
    """[references] section — JSON files mapping ids to display names."""

    programs_file: str = ""
    beneficiaries_file: str = ""


class StoryhubConfig(BaseModel):
    """Top-level configuration model."""

    store: StoreSectionConfig = Field(default_factory=StoreSectionConfig)
    storage: StorageSectionConfig = Field(default_factory=StorageSectionConfig)
    references: ReferencesSectionConfig = Field(default_factory=ReferencesSectionConfig)


def load_config(path: str | Path | None = None) -> StoryhubConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .storyhub.toml in CWD
    3. ~/.config/storyhub/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged StoryhubConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG.exists():
            data = _load_toml(GLOBAL_CONFIG)
            logger.info("Loaded config from %s", GLOBAL_CONFIG)

    config = StoryhubConfig.model_validate(data) if data else StoryhubConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: StoryhubConfig, **cli_kwargs: object) -> StoryhubConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).

    Args:
        config: Base config.
        **cli_kwargs: CLI flag values, keyed ``<section>_<field>``
            (e.g., ``store_directory``, ``storage_backend``).

    Returns:
        Updated config with CLI overrides applied.
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "store_directory": ("store", "directory"),
        "storage_backend": ("storage", "backend"),
        "storage_directory": ("storage", "directory"),
        "preview_width": ("storage", "preview_width"),
        "programs_file": ("references", "programs_file"),
        "beneficiaries_file": ("references", "beneficiaries_file"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return StoryhubConfig.model_validate(data)


def build_story_service(config: StoryhubConfig) -> StoryService:
    """Wire the store, storage backend, references and coordinator."""
    from storyhub.content.store import StoryStore
    from storyhub.integrations.storage import create_object_storage
    from storyhub.media.services import MediaCoordinator
    from storyhub.stories.references import ReferenceDirectory
    from storyhub.stories.services import StoryService

    store = StoryStore(Path(config.store.directory))
    coordinator = MediaCoordinator(
        store,
        create_object_storage(config.storage),
        max_save_retries=config.store.max_save_retries,
        preview_width=config.storage.preview_width,
    )
    refs = config.references
    programs = (
        ReferenceDirectory.from_file(Path(refs.programs_file), "program")
        if refs.programs_file
        else None
    )
    beneficiaries = (
        ReferenceDirectory.from_file(Path(refs.beneficiaries_file), "beneficiary")
        if refs.beneficiaries_file
        else None
    )
    return StoryService(
        store,
        coordinator,
        programs=programs,
        beneficiaries=beneficiaries,
        max_save_retries=config.store.max_save_retries,
    )


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: StoryhubConfig) -> StoryhubConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "STORYHUB_STORE_DIR": ("store", "directory"),
        "STORYHUB_STORAGE_BACKEND": ("storage", "backend"),
        "STORYHUB_STORAGE_DIR": ("storage", "directory"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    for env_var, field in [
        ("CLOUDINARY_CLOUD_NAME", "cloud_name"),
        ("CLOUDINARY_API_KEY", "api_key"),
        ("CLOUDINARY_API_SECRET", "api_secret"),
    ]:
        value = os.environ.get(env_var)
        if value is not None:
            data["storage"]["cloudinary"][field] = value

    return StoryhubConfig.model_validate(data)
