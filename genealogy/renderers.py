from __future__ import annotations

"""
Custom DRF renderer for GEDCOM passthrough.

Purpose
-------
- Allow `?format=ged` or `Accept: text/x-gedcom` to negotiate cleanly with DRF
  so the export view can return `Response(gedcom_text)`.
- Error payloads (dicts) still render, as JSON text, instead of crashing.

Notes
-----
- Output is UTF-8 (GEDCOM 5.5.1 `CHAR UTF-8`), no BOM.
"""

import json
from typing import Any, Optional

from rest_framework.renderers import BaseRenderer


class GedcomRenderer(BaseRenderer):
    """Passthrough renderer for views that build GEDCOM text themselves."""

    media_type = "text/x-gedcom"
    format = "ged"
    charset = "utf-8"

    def render(
        self,
        data: Any,
        accepted_media_type: Optional[str] = None,
        renderer_context: Optional[dict] = None,
    ) -> bytes:
        if data is None:
            return b""
        if isinstance(data, (bytes, bytearray)):
            return bytes(data)
        if isinstance(data, str):
            return data.encode("utf-8")
        return json.dumps(data, ensure_ascii=False, default=str).encode("utf-8")
