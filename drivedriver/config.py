"""
Configuration constants and the runtime settings for the drive cataloger.
"""
import os
import threading
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import FrozenSet, Optional

from .exceptions import ConfigError

# --- File Type Definitions ---
IMAGE_EXTS = {'jpg', 'jpeg', 'png', 'gif', 'bmp', 'tiff', 'webp', 'heic'}
VIDEO_EXTS = {'mp4', 'avi', 'mov', 'wmv', 'flv', 'mkv', 'webm'}
AUDIO_EXTS = {'mp3', 'wav', 'ogg', 'flac', 'aac', 'm4a'}
DOCUMENT_EXTS = {'doc', 'docx', 'pdf', 'txt', 'rtf', 'odt'}
SPREADSHEET_EXTS = {'xls', 'xlsx', 'csv', 'ods'}
PRESENTATION_EXTS = {'ppt', 'pptx', 'odp'}
APPLICATION_EXTS = {'exe', 'app', 'dmg', 'deb', 'rpm'}
ARCHIVE_EXTS = {'zip', 'rar', '7z', 'tar', 'gz'}

# Extension to Category Mapping
EXT_TO_CATEGORY = {}
for ext in IMAGE_EXTS: EXT_TO_CATEGORY[ext] = 'image'
for ext in VIDEO_EXTS: EXT_TO_CATEGORY[ext] = 'video'
for ext in AUDIO_EXTS: EXT_TO_CATEGORY[ext] = 'audio'
for ext in DOCUMENT_EXTS: EXT_TO_CATEGORY[ext] = 'document'
for ext in SPREADSHEET_EXTS: EXT_TO_CATEGORY[ext] = 'spreadsheet'
for ext in PRESENTATION_EXTS: EXT_TO_CATEGORY[ext] = 'presentation'
for ext in APPLICATION_EXTS: EXT_TO_CATEGORY[ext] = 'application'
for ext in ARCHIVE_EXTS: EXT_TO_CATEGORY[ext] = 'archive'

CATEGORIES = (
    'image', 'video', 'audio', 'document', 'spreadsheet',
    'presentation', 'application', 'archive', 'other',
)

# Windows has no execute bit; these extensions stand in for it
WINDOWS_EXECUTABLE_EXTS = {'exe', 'bat', 'cmd'}
# Leading bytes of native executables and scripts
EXECUTABLE_MAGIC = (b'MZ', b'\x7fELF', b'#!')

# --- MIME Guessing ---
DEFAULT_MIME_TYPE = 'application/octet-stream'
EXT_TO_MIME = {
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'pdf': 'application/pdf',
    'txt': 'text/plain',
}

# --- Importance Score ---
# (max days since modification, bonus), checked in order
RECENCY_BONUSES = [(7, 30), (30, 20), (90, 10)]
CATEGORY_BONUSES = {
    'document': 25,
    'spreadsheet': 20,
    'presentation': 20,
    'image': 15,
    'video': 15,
    'audio': 10,
    'application': 5,
}
MAX_IMPORTANCE_SCORE = 100

# --- Drive Discovery ---
MOUNT_TABLE_PATH = Path('/proc/mounts')
MACOS_VOLUMES_DIR = Path('/Volumes')
PSEUDO_MOUNT_PREFIXES = ('/proc', '/sys', '/dev', '/run')

# --- Catalog Storage ---
DATA_DIR_NAME = 'data'
STATS_FILE_NAME = 'latest_stats.json'
CHUNK_FILE_PREFIX = 'metadata_chunk_'
CHUNK_CAPACITY = 10_000

# --- Duplicate Detection ---
COMPARE_BLOCK_SIZE = 64 * 1024  # 64 KB blocks for byte comparison

# --- AI Analysis ---
AI_MAX_FILE_SIZE = 1_000_000
AI_SAMPLE_BYTES = 4096
AI_REQUEST_TIMEOUT = 60  # seconds
AI_TEXT_EXTS = {
    'txt', 'md', 'json', 'csv', 'xml', 'html', 'htm', 'css', 'js',
    'py', 'rs', 'java', 'c', 'cpp', 'h', 'hpp', 'sh', 'bat', 'ps1',
    'log', 'conf', 'ini', 'yaml', 'yml', 'toml',
}

DEFAULT_OLLAMA_MODEL = 'default-model'
DEFAULT_OLLAMA_URL = 'http://localhost:11434'

CONFIG_FILE_NAME = 'config.toml'
HOME_ENV_VAR = 'DRIVEDRIVER_HOME'


@dataclass(frozen=True)
class Config:
    """
    Immutable settings snapshot handed to each walk.
    """
    use_ai_analysis: bool = False
    ollama_model: str = DEFAULT_OLLAMA_MODEL
    ollama_url: str = DEFAULT_OLLAMA_URL
    excluded_paths: FrozenSet[Path] = field(default_factory=frozenset)

    def is_path_excluded(self, path: Path) -> bool:
        """True if path is an excluded path or lies beneath one."""
        if not self.excluded_paths:
            return False
        path = Path(os.path.abspath(path))
        return any(ex == path or ex in path.parents for ex in self.excluded_paths)

    def with_exclusions(self, *paths) -> 'Config':
        extra = {Path(os.path.abspath(p)) for p in paths}
        return replace(self, excluded_paths=self.excluded_paths | extra)


class ConfigHandle:
    """
    Shared holder for the current Config.

    Readers grab a snapshot; writers publish a whole new Config. A walk keeps
    the snapshot it started with, so updates apply to the next walk.
    """
    def __init__(self, config: Optional[Config] = None):
        self._config = config or Config()
        self._lock = threading.Lock()

    def snapshot(self) -> Config:
        with self._lock:
            return self._config

    def publish(self, config: Config) -> Config:
        with self._lock:
            old, self._config = self._config, config
        return old


def get_config_dir(create: bool = True) -> Path:
    """Returns $DRIVEDRIVER_HOME, or ~/.drivedriver."""
    override = os.environ.get(HOME_ENV_VAR)
    config_dir = Path(override).expanduser() if override else Path.home() / '.drivedriver'
    if create:
        config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def load_config(config_path: Path) -> Config:
    """
    Reads a TOML config file. A missing file yields the defaults
    (AI analysis off, nothing excluded).
    """
    if not config_path.exists():
        return Config()

    try:
        with config_path.open('rb') as f:
            raw = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Cannot read config {config_path}: {e}") from e

    use_ai = raw.get('use_ai_analysis', False)
    model = raw.get('ollama_model', DEFAULT_OLLAMA_MODEL)
    url = raw.get('ollama_url', DEFAULT_OLLAMA_URL)
    excluded = raw.get('excluded_paths', [])

    if not isinstance(use_ai, bool):
        raise ConfigError("use_ai_analysis must be a boolean")
    if not isinstance(model, str) or not isinstance(url, str):
        raise ConfigError("ollama_model and ollama_url must be strings")
    if not isinstance(excluded, list) or not all(isinstance(p, str) for p in excluded):
        raise ConfigError("excluded_paths must be a list of strings")

    return Config(
        use_ai_analysis=use_ai,
        ollama_model=model,
        ollama_url=url,
        excluded_paths=frozenset(Path(os.path.abspath(Path(p).expanduser())) for p in excluded),
    )
