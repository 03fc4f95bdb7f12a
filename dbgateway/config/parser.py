"""Loading gateway configuration documents.

A document is YAML (``.yaml``/``.yml``) or JSON (``.json``, the
``mcp-config.json`` layout). Before validation every string value goes
through ``${VAR}`` / ``${VAR:-default}`` interpolation and every database
entry is normalized: a bare URL string, or a mapping that carries a ``url``
but no ``type``, is expanded into explicit connection fields.
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import parse_qs, unquote, urlparse

import yaml
from pydantic import ValidationError

from dbgateway.config.models import EnvironmentSettings, GatewayConfig
from dbgateway.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')

DEFAULT_LOCATIONS = (
    Path("dbgateway.yaml"),
    Path("dbgateway.yml"),
    Path("config") / "dbgateway.yaml",
    Path("config") / "mcp-config.json",
)

DEFAULT_PORTS = {
    'postgresql': 5432,
    'mysql': 3306,
    'redis': 6379,
    'mongodb': 27017,
    'cassandra': 9042,
}


def format_validation_error(error: ValidationError) -> List[str]:
    """One ``location: message`` line per pydantic error."""
    messages = []
    for item in error.errors():
        location = '.'.join(str(part) for part in item.get('loc', ()) if part)
        messages.append(f"{location}: {item['msg']}" if location else item['msg'])
    return messages


def interpolate(value: Any) -> Any:
    """Resolve environment references in every string of a document.

    Raises:
        ConfigurationError: If ``${VAR}`` names an unset variable with no default.
    """
    if isinstance(value, dict):
        return {key: interpolate(item) for key, item in value.items()}
    if isinstance(value, list):
        return [interpolate(item) for item in value]
    if not isinstance(value, str):
        return value

    def resolve(match):
        name, sep, default = match.group(1).partition(':-')
        name = name.strip()
        if sep:
            return os.getenv(name, default.strip())
        resolved = os.getenv(name)
        if resolved is None:
            raise ConfigurationError(f"Required environment variable '{name}' is not set")
        return resolved

    return ENV_VAR_PATTERN.sub(resolve, value)


def parse_database_url(url: str) -> Optional[Dict[str, Any]]:
    """Turn a connection URL into connection fields.

    Supported schemes are ``postgres``/``postgresql``, ``mysql``, ``sqlite``,
    ``redis``, ``mongodb`` and ``cassandra``. Missing ports take the kind's
    default.

    Returns:
        The field mapping (``type`` included), or None for an unknown scheme
        or a URL that cannot be parsed.
    """
    try:
        parsed = urlparse(url)
        port = parsed.port
    except ValueError:
        return None

    scheme = parsed.scheme.lower()
    kind = 'postgresql' if scheme == 'postgres' else scheme
    if kind == 'sqlite':
        filename = parsed.path or parsed.netloc
        return {'type': 'sqlite', 'filename': ':memory:' if filename == '/:memory:' else filename}
    if kind not in DEFAULT_PORTS:
        return None

    query = {key: values[-1] for key, values in parse_qs(parsed.query).items()}
    path = unquote(parsed.path.lstrip('/'))
    fields: Dict[str, Any] = {
        'type': kind,
        'host': parsed.hostname,
        'port': port or DEFAULT_PORTS[kind],
        'username': unquote(parsed.username) if parsed.username else None,
        'password': unquote(parsed.password) if parsed.password else None,
    }

    if kind == 'postgresql':
        fields.update(database=path, ssl=query.get('sslmode') == 'require')
    elif kind == 'mysql':
        fields.update(database=path, ssl=query.get('ssl') == 'true')
    elif kind == 'redis':
        fields.update(db=int(path) if path.isdigit() else 0)
        del fields['username']
    elif kind == 'mongodb':
        fields.update(database=path, auth_source=query.get('authSource'))
    elif kind == 'cassandra':
        fields.update(keyspace=path, datacenter=query.get('datacenter') or 'datacenter1')

    return {key: value for key, value in fields.items() if value is not None}


def expand_connection_url(entry: Any) -> Any:
    """Expand a URL-only database entry; anything else is returned unchanged.

    Explicit fields in the entry win over fields taken from its URL.
    """
    if isinstance(entry, str):
        entry = {'url': entry}
    if not isinstance(entry, Mapping) or entry.get('type') or not entry.get('url'):
        return entry

    fields = parse_database_url(entry['url'])
    if fields is None:
        logger.debug(f"No connection mapping for URL scheme of entry '{entry.get('name', '')}'")
        return dict(entry)
    return {**fields, **{key: value for key, value in entry.items() if key != 'url'}}


def normalize_databases(databases: Any) -> Any:
    """Apply :func:`expand_connection_url` to the list or ``{name: entry}`` form."""
    if isinstance(databases, dict):
        return {name: expand_connection_url(entry) for name, entry in databases.items()}
    if isinstance(databases, list):
        return [expand_connection_url(entry) for entry in databases]
    return databases


class ConfigParser:
    """Finds, reads and validates gateway configuration documents."""

    def __init__(self) -> None:
        self.env_settings = EnvironmentSettings()

    def load_config(self, config_path: Optional[PathLike] = None) -> GatewayConfig:
        """Load and validate configuration.

        Args:
            config_path: Path to a YAML or JSON document. If None, the
                ``DBGATEWAY_CONFIG_FILE`` setting and then the default
                locations are searched.

        Returns:
            Validated GatewayConfig instance.

        Raises:
            ConfigurationError: If no document is found or it is invalid.
        """
        config_file = self.find_config_file(config_path)
        raw = self.read_document(config_file)

        document = interpolate(raw)
        if 'databases' in document:
            document['databases'] = normalize_databases(document['databases'])

        try:
            config = GatewayConfig(**document)
        except ValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(format_validation_error(e))}"
            ) from e

        logger.debug(f"Loaded {len(config.databases)} database(s) from '{config_file}'")
        return config

    def find_config_file(self, config_path: Optional[PathLike] = None) -> Path:
        """Resolve the document to load.

        Raises:
            ConfigurationError: If no configuration file is found.
        """
        if config_path:
            path = Path(config_path)
            if path.exists():
                return path
            raise ConfigurationError(f"Configuration file '{config_path}' not found")

        if self.env_settings.config_file:
            path = Path(self.env_settings.config_file)
            if path.exists():
                return path

        candidates = [Path.cwd() / location for location in DEFAULT_LOCATIONS]
        for candidate in candidates:
            if candidate.exists():
                return candidate

        raise ConfigurationError(
            f"No configuration file found in default locations: {[str(p) for p in candidates]}"
        )

    @staticmethod
    def read_document(config_file: Path) -> Dict[str, Any]:
        """Read a document into a mapping, by file suffix.

        Raises:
            ConfigurationError: If the file is empty, malformed or not a mapping.
        """
        text = config_file.read_text(encoding='utf-8')
        if not text.strip():
            raise ConfigurationError(f"Configuration file '{config_file}' is empty")

        if config_file.suffix.lower() == '.json':
            try:
                document = json.loads(text)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in '{config_file}': {e}") from e
        else:
            try:
                document = yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in '{config_file}': {e}") from e

        if not isinstance(document, dict):
            raise ConfigurationError(f"Configuration file '{config_file}' must contain a mapping")
        return document


def save_config(document: Mapping[str, Any], output_path: PathLike) -> None:
    """Write a configuration document as JSON or YAML, by file suffix."""
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as file:
        if path.suffix.lower() == '.json':
            json.dump(dict(document), file, indent=2)
            file.write('\n')
        else:
            yaml.safe_dump(dict(document), file, default_flow_style=False, sort_keys=False)


SAMPLE_CONFIG: Dict[str, Any] = {
    'databases': [
        {
            'name': 'app',
            'type': 'postgresql',
            'host': 'localhost',
            'port': 5432,
            'database': 'myapp_dev',
            'username': 'dev_user',
            'password': '${DEV_DB_PASSWORD:-dev_password}',
            'pool_size': 20,
        },
        {'name': 'local', 'type': 'sqlite', 'filename': './local.db'},
        {'name': 'cache', 'url': 'redis://localhost:6379/0'},
    ],
    'default_connection': 'app',
    'server': {
        'name': 'dbgateway',
        'version': '1.0.0',
        'description': 'Database gateway',
    },
    'logging': {'level': 'info', 'format': 'text'},
}


def create_sample_config(output_path: PathLike) -> None:
    """Create a sample configuration file (JSON or YAML, by suffix)."""
    save_config(SAMPLE_CONFIG, output_path)


_config_parser = ConfigParser()
_loaded_config: Optional[GatewayConfig] = None


def get_config(config_path: Optional[PathLike] = None, reload: bool = False) -> GatewayConfig:
    """Get the process-wide configuration, loading it on first use or on ``reload``."""
    global _loaded_config

    if _loaded_config is None or reload:
        _loaded_config = _config_parser.load_config(config_path)

    return _loaded_config
