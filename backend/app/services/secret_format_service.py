"""
Secret file formats: env, json, yaml and csv.

Parsing turns file content into `{key, value, type}` entries with the value
always a string; rendering reverses it, reconstructing typed values for the
structured formats.
"""

import csv
import io
import json
from datetime import date, datetime
from typing import Any, Dict, List, Sequence, Tuple

import yaml
from loguru import logger

from app.utils.exceptions import ValidationError
from app.utils.validators import EXPORT_FORMATS

CONTENT_TYPES = {
    "env": "text/plain",
    "json": "application/json",
    "yaml": "text/yaml",
    "csv": "text/csv",
}

CSV_HEADER = ("key", "value", "type")


class SecretFormatService:
    """Codec between secret rows and export/import files."""

    def check_format(self, fmt: str) -> str:
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(f"Unsupported format '{fmt}'", field="format")
        return fmt

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, content: str, fmt: str) -> List[Dict[str, str]]:
        """
        Parse file content into secret entries.

        Raises:
            ValidationError: unsupported format or unparseable content
        """
        self.check_format(fmt)
        try:
            if fmt == "env":
                return self._parse_env(content)
            if fmt == "json":
                return self._parse_mapping(json.loads(content))
            if fmt == "yaml":
                return self._parse_mapping(yaml.safe_load(content))
            return self._parse_csv(content)
        except ValidationError:
            raise
        except (ValueError, yaml.YAMLError, csv.Error) as e:
            logger.info(f"Failed to parse {fmt} import: {e}")
            raise ValidationError("Failed to parse file", field="file")

    def _parse_env(self, content: str) -> List[Dict[str, str]]:
        entries = []
        for line in content.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            key, _, value = stripped.partition("=")
            entries.append({
                "key": key.strip(),
                "value": self._strip_quotes(value.strip()),
                "type": "text",
            })
        return entries

    @staticmethod
    def _strip_quotes(value: str) -> str:
        if value[:1] in ("'", '"'):
            value = value[1:]
        if value[-1:] in ("'", '"'):
            value = value[:-1]
        return value

    def _parse_mapping(self, data: Any) -> List[Dict[str, str]]:
        if not isinstance(data, dict):
            raise ValidationError("File must contain a top-level mapping of keys to values", field="file")
        return [
            {"key": str(key), **self._classify(value)}
            for key, value in data.items()
        ]

    @staticmethod
    def _classify(value: Any) -> Dict[str, str]:
        # bool is a subclass of int, so it is checked first
        if isinstance(value, bool):
            return {"value": "true" if value else "false", "type": "boolean"}
        if isinstance(value, int):
            return {"value": str(value), "type": "integer"}
        if isinstance(value, float):
            return {"value": str(value), "type": "decimal"}
        if isinstance(value, str):
            return {"value": value, "type": "text"}
        if isinstance(value, datetime):
            return {"value": value.isoformat(), "type": "datetime"}
        if isinstance(value, date):
            return {"value": value.isoformat(), "type": "date"}
        return {"value": json.dumps(value, separators=(",", ":"), default=str), "type": "json"}

    def _parse_csv(self, content: str) -> List[Dict[str, str]]:
        reader = csv.DictReader(io.StringIO(content))
        if reader.fieldnames is None or "key" not in reader.fieldnames:
            raise ValidationError("CSV header must contain key,value,type", field="file")
        return [
            {
                "key": (row.get("key") or "").strip(),
                "value": row.get("value") or "",
                "type": (row.get("type") or "").strip() or "text",
            }
            for row in reader
        ]

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def typed_value(self, value: str, secret_type: str) -> Any:
        """Reconstruct a native value from its stored string."""
        if secret_type == "boolean":
            return value.lower() == "true"
        try:
            if secret_type == "integer":
                return int(value)
            if secret_type == "decimal":
                return float(value)
            if secret_type == "json":
                return json.loads(value)
        except ValueError:
            return value
        return value

    def render(self, rows: Sequence[Tuple[str, str, str]], fmt: str) -> str:
        """
        Serialize (key, value, type) rows, already in display order.
        """
        self.check_format(fmt)

        if fmt == "env":
            return "\n".join(f"{key}={value}" for key, value, _ in rows)

        if fmt == "csv":
            buffer = io.StringIO()
            writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
            writer.writerow(CSV_HEADER)
            writer.writerows(rows)
            return buffer.getvalue()

        data = {key: self.typed_value(value, secret_type) for key, value, secret_type in rows}
        if fmt == "json":
            return json.dumps(data, indent=2)
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)

    def content_type(self, fmt: str) -> str:
        return CONTENT_TYPES[self.check_format(fmt)]

    def filename(self, config_name: str, fmt: str) -> str:
        return f"{config_name}.{self.check_format(fmt)}"


# Singleton instance
secret_format_service = SecretFormatService()
