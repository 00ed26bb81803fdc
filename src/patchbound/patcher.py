"""
Patcher export descriptor.

Reads the parts of an exported patcher document the control plane needs:
its display metadata and its preset list. Fetching the document and loading
the device runtime it names are left to the host application.
"""

import json
import re
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field

from patchbound.config import ConfigurationError
from patchbound.logging_config import get_logger
from patchbound.presets import Preset

logger = get_logger(__name__)

# Runtime builds exported from a development version cannot be resolved to a release
_DEV_VERSION = re.compile(r"^\d+\.\d+\.\d+-dev$")


class PatcherDescription(BaseModel):
    """Metadata and presets of an exported patcher."""

    filename: Optional[str] = None
    rnbo_version: str = "unknown"
    presets: list[Preset] = Field(default_factory=list)

    @classmethod
    def from_export(cls, document: dict) -> "PatcherDescription":
        """
        Parse an export document.

        Args:
            document: Decoded export JSON (``desc.meta`` plus optional ``presets``)
        """
        meta = (document.get("desc") or {}).get("meta") or {}
        return cls(
            filename=meta.get("filename"),
            rnbo_version=meta.get("rnboversion") or "unknown",
            presets=[Preset.model_validate(entry) for entry in document.get("presets") or []],
        )

    @property
    def title(self) -> str:
        """Display title, e.g. "GS1.4 (v1.3.1)"."""
        return f"{self.filename or 'Unnamed Patcher'} (v{self.rnbo_version})"

    def check_runtime_version(self) -> None:
        """
        Reject exports built with a development runtime.

        Raises:
            ConfigurationError: If the export names a "-dev" runtime version
        """
        if _DEV_VERSION.match(self.rnbo_version):
            raise ConfigurationError(
                f"Patcher exported with a debug runtime version ({self.rnbo_version}). "
                "Specify the release runtime version to use instead.",
            )


def load_patcher(path: Union[str, Path]) -> tuple[PatcherDescription, dict]:
    """
    Load an export document from a local file.

    Returns:
        (description, raw document) tuple

    Raises:
        ConfigurationError: If the file is missing, not valid JSON, or was
            exported with a development runtime
    """
    path = Path(path)
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Couldn't load patcher export bundle: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Patcher export {path} is not valid JSON: {e}") from e

    description = PatcherDescription.from_export(document)
    description.check_runtime_version()
    logger.info(f"Loaded patcher {description.title} with {len(description.presets)} preset(s)")
    return description, document
