"""Versioned tool metadata stored as JSON inside a table comment.

The envelope looks like ``{"housekit":{"version":"1.2.0","appendOnly":true,
"readOnly":false}}``.  Its absence means a legacy or unversioned table,
never an error.

Supported versions
------------------
* ``1.1.0`` -- ``appendOnly``.
* ``1.2.0`` -- ``appendOnly`` and ``readOnly``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from drift_engine.errors import UnsupportedMetadataVersionError
from drift_engine.parser.normalizer import clean_comment

logger = logging.getLogger(__name__)

METADATA_KEY = "housekit"
SUPPORTED_METADATA_VERSIONS: tuple[str, ...] = ("1.1.0", "1.2.0")
DEFAULT_METADATA_VERSION = "1.2.0"

# Per-version defaults; versions without a readOnly flag map it to None.
_METADATA_DEFAULTS: dict[str, tuple[bool, bool | None]] = {
    "1.1.0": (True, None),
    "1.2.0": (True, False),
}


class HousekitMetadata(BaseModel):
    """Decoded metadata envelope."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    version: str
    append_only: bool = Field(default=True, alias="appendOnly")
    read_only: bool | None = Field(default=None, alias="readOnly")

    def describe(self) -> str:
        """Return a compact ``key=value`` summary for reasons and warnings."""
        text = f"version={self.version}, appendOnly={_js_bool(self.append_only)}"
        if self.read_only is not None:
            text += f", readOnly={_js_bool(self.read_only)}"
        return text


def _js_bool(value: bool) -> str:
    return "true" if value else "false"


def assert_metadata_version(version: str) -> str:
    """Return *version* unchanged, or raise if it is not supported."""
    if version not in SUPPORTED_METADATA_VERSIONS:
        raise UnsupportedMetadataVersionError(
            f'Unsupported housekit metadata version "{version}". '
            f"Supported versions: {', '.join(SUPPORTED_METADATA_VERSIONS)}"
        )
    return version


def build_metadata(
    version: str,
    *,
    append_only: bool | None = None,
    read_only: bool | None = None,
) -> HousekitMetadata:
    """Build metadata for *version*, filling unset flags from that version's defaults."""
    assert_metadata_version(version)
    default_append, default_read = _METADATA_DEFAULTS[version]
    if default_read is None:
        return HousekitMetadata(version=version, append_only=default_append if append_only is None else append_only)
    return HousekitMetadata(
        version=version,
        append_only=default_append if append_only is None else append_only,
        read_only=default_read if read_only is None else read_only,
    )


def normalize_metadata(meta: HousekitMetadata | None) -> HousekitMetadata | None:
    """Coerce decoded metadata to the exact field set of its version.

    Unsupported versions normalise to ``None`` (treated as absent).
    """
    if meta is None or meta.version not in SUPPORTED_METADATA_VERSIONS:
        return None
    return build_metadata(meta.version, append_only=meta.append_only, read_only=meta.read_only)


def upgrade_metadata(
    base: HousekitMetadata | None,
    target_version: str,
    *,
    append_only: bool | None = None,
    read_only: bool | None = None,
) -> HousekitMetadata:
    """Carry *base* forward to *target_version*.

    Explicit overrides win, then values already recorded in *base*, then the
    target version's defaults.
    """
    assert_metadata_version(target_version)
    default_append, default_read = _METADATA_DEFAULTS[target_version]
    resolved_append = append_only
    if resolved_append is None:
        resolved_append = base.append_only if base is not None else default_append
    if default_read is None:
        return HousekitMetadata(version=target_version, append_only=resolved_append)
    resolved_read = read_only
    if resolved_read is None:
        resolved_read = base.read_only if base is not None and base.read_only is not None else default_read
    return HousekitMetadata(version=target_version, append_only=resolved_append, read_only=resolved_read)


def serialize_metadata_comment(meta: HousekitMetadata) -> str:
    """Render *meta* as the compact JSON comment envelope."""
    payload: dict[str, Any] = {"version": meta.version, "appendOnly": meta.append_only}
    if meta.read_only is not None:
        payload["readOnly"] = meta.read_only
    return json.dumps({METADATA_KEY: payload}, separators=(",", ":"))


class MetadataParseResult(BaseModel):
    """Outcome of decoding a table comment."""

    metadata: HousekitMetadata | None = None
    malformed: bool = Field(
        default=False,
        description="True when the comment looked like JSON but could not be decoded.",
    )


def read_metadata_comment(comment: str | None) -> MetadataParseResult:
    """Decode the metadata envelope from a table comment.

    Plain-text comments and JSON without a ``housekit`` key yield no
    metadata.  Comments that start like JSON but fail to decode, or whose
    envelope has the wrong shape, are flagged as malformed.
    """
    cleaned = clean_comment(comment)
    if not cleaned:
        return MetadataParseResult()
    looks_like_json = cleaned.startswith("{")
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        if looks_like_json:
            logger.debug("Table comment is not valid JSON: %.120s", cleaned)
        return MetadataParseResult(malformed=looks_like_json)
    if not isinstance(parsed, dict) or METADATA_KEY not in parsed:
        return MetadataParseResult()
    raw = parsed[METADATA_KEY]
    if not isinstance(raw, dict) or not raw.get("version"):
        return MetadataParseResult(malformed=True)
    try:
        meta = HousekitMetadata.model_validate({**raw, "version": str(raw["version"])})
    except ValidationError:
        logger.debug("Metadata envelope has an unexpected shape: %r", raw)
        return MetadataParseResult(malformed=True)
    return MetadataParseResult(metadata=meta)


def parse_metadata_comment(comment: str | None) -> HousekitMetadata | None:
    """Return the metadata recorded in *comment*, or ``None`` if absent."""
    return read_metadata_comment(comment).metadata
