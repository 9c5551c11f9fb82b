# security/input_validation.py

from pathlib import Path
import os

from imgdedup.core.exceptions import ConfigError


class SecurityValidator:
    """
    Validate the directories a run is allowed to touch
    """

    SYSTEM_DIRS = (Path('/etc'), Path('/sys'), Path('/proc'), Path('/dev'),
                   Path('C:\\Windows'), Path('C:\\Program Files'))

    @staticmethod
    def validate_root(directory: str, allow_system_dirs: bool = False) -> Path:
        """
        Check the scan root exists, is a readable directory and is not a
        system directory. Returns the resolved path.
        """
        dir_path = Path(directory).resolve()

        if not dir_path.is_dir():
            raise ConfigError(f"root directory {directory} does not exist or is not a directory")

        if not allow_system_dirs and SecurityValidator._is_system_dir(dir_path):
            raise ConfigError(f"refusing to scan system directory {dir_path}")

        if not os.access(dir_path, os.R_OK | os.X_OK):
            raise ConfigError(f"root directory {directory} is not readable")

        return dir_path

    @staticmethod
    def validate_destination(destination: str, root: Path, create: bool = True) -> Path:
        """
        Create the keep destination if needed and check it is writable.
        A destination inside the scan root is allowed; the pipeline leaves it
        out of the scan. With `create=False` nothing is made on disk and a
        missing directory is accepted.
        """
        dest_path = Path(destination).resolve()

        if dest_path.exists() and not dest_path.is_dir():
            raise ConfigError(f"keep destination {destination} is not a directory")

        if SecurityValidator._is_system_dir(dest_path):
            raise ConfigError(f"refusing to write into system directory {dest_path}")

        if dest_path == root:
            raise ConfigError("keep destination must differ from the scan root")

        if not create:
            if dest_path.exists() and not os.access(dest_path, os.W_OK | os.X_OK):
                raise ConfigError(f"keep destination {destination} is not writable")
            return dest_path

        try:
            dest_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"cannot create keep destination {destination}: {e.strerror}") from e

        if not os.access(dest_path, os.W_OK | os.X_OK):
            raise ConfigError(f"keep destination {destination} is not writable")

        return dest_path

    @staticmethod
    def _is_system_dir(path: Path) -> bool:
        for sys_dir in SecurityValidator.SYSTEM_DIRS:
            if sys_dir.exists() and (path == sys_dir or path.is_relative_to(sys_dir)):
                return True
        return False
