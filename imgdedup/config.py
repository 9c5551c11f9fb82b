import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import FrozenSet, Optional

import yaml

from imgdedup.core.exceptions import ConfigError
from imgdedup.core.models import ResolutionMode

DEFAULT_TARGET_DIR = "target"
DEFAULT_THREADS = 4

DEFAULT_EXTENSIONS = frozenset({
    '.jpg', '.jpeg', '.png', '.bmp', '.gif', '.tiff', '.webp'
})


def _is_int(value) -> bool:
    # bool is an int subclass; True must not pass as a thread count
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class DedupConfig:
    """Run configuration, built once at start-up and passed down explicitly"""
    threads: int = DEFAULT_THREADS
    keep: Optional[str] = None  # destination directory; None means delete mode
    hash_size: int = 8  # 8 -> 64-bit pHash
    image_extensions: FrozenSet[str] = field(default_factory=lambda: DEFAULT_EXTENSIONS)
    bucket_shards: int = 16
    dry_run: bool = False
    show_progress: bool = True
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    @property
    def mode(self) -> ResolutionMode:
        return ResolutionMode.DELETE if self.keep is None else ResolutionMode.KEEP

    def validate(self) -> 'DedupConfig':
        """Raise ConfigError for anything that would make the run meaningless"""
        if not _is_int(self.threads) or self.threads < 1:
            raise ConfigError(f"threads must be an integer >= 1, got {self.threads!r}")
        if not _is_int(self.hash_size) or self.hash_size < 2:
            raise ConfigError(f"hash_size must be an integer >= 2, got {self.hash_size!r}")
        if not _is_int(self.bucket_shards) or self.bucket_shards < 1:
            raise ConfigError(f"bucket_shards must be >= 1, got {self.bucket_shards!r}")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ConfigError(f"unknown log level {self.log_level!r}")
        if not self.image_extensions:
            raise ConfigError("image_extensions must not be empty")

        if self.keep is not None:
            if not str(self.keep).strip():
                raise ConfigError("keep destination must not be empty")
            destination = Path(self.keep)
            if destination.exists() and not destination.is_dir():
                raise ConfigError(f"keep destination {self.keep} is not a directory")
        return self

    def with_overrides(self, **overrides) -> 'DedupConfig':
        """Copy with the given non-None values replaced"""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def save(self, path: str = "config.yaml"):
        """Save configuration to YAML file"""
        config_dict = {f.name: getattr(self, f.name) for f in fields(self)}
        config_dict['image_extensions'] = sorted(self.image_extensions)

        with open(path, 'w') as f:
            yaml.dump(config_dict, f, default_flow_style=False, indent=2)

    @classmethod
    def load(cls, path: str = "config.yaml") -> 'DedupConfig':
        """Load configuration from YAML file"""
        if not Path(path).exists():
            return cls()  # Return default config

        with open(path, 'r') as f:
            try:
                config_dict = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"cannot parse {path}: {e}") from e

        if not isinstance(config_dict, dict):
            raise ConfigError(f"{path} must contain a mapping")

        known = {f.name for f in fields(cls)}
        unknown = set(config_dict) - known
        if unknown:
            raise ConfigError(f"unknown config keys in {path}: {', '.join(sorted(unknown))}")

        if 'image_extensions' in config_dict:
            config_dict['image_extensions'] = frozenset(
                ext.lower() if ext.startswith('.') else f'.{ext.lower()}'
                for ext in config_dict['image_extensions']
            )

        return cls(**config_dict)
