"""
Solid-model strategies.

One interface, two implementations picked explicitly by the caller:

  - LocalStepStrategy: the in-process B-rep kernel (foam_export.step)
  - DelegatedStepStrategy: POSTs the canonical layout to a remote STEP
    service and returns its document

Both return the STEP text or None. A delegated call that fails, times out
or is cancelled yields None, never a partial document.
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

import requests

from foam_export.config import DEFAULT_STEP_TIMEOUT_S, Settings
from foam_export.models import Layout
from foam_export.normalize import layout_to_payload
from foam_export.step import SolidMode, build_step

logger = logging.getLogger(__name__)

STEP_ENDPOINT = "/step-from-layout"
ERROR_BODY_LIMIT = 600


def _cancelled(cancel: Optional[threading.Event]) -> bool:
    return cancel is not None and cancel.is_set()


class SolidModelStrategy(ABC):
    """Builds a STEP document for a canonical layout."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in logs."""

    @abstractmethod
    def build(
        self,
        layout: Layout,
        quote_no: str,
        material_legend: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Optional[str]:
        """Return STEP text, or None when no document could be produced."""


class LocalStepStrategy(SolidModelStrategy):

    def __init__(self, mode: SolidMode = SolidMode.EXACT):
        self.mode = mode

    @property
    def name(self) -> str:
        return f"local-{self.mode.value}"

    def build(self, layout, quote_no, material_legend=None, cancel=None):
        if _cancelled(cancel):
            return None
        return build_step(layout, quote_no, material_legend, mode=self.mode)


class DelegatedStepStrategy(SolidModelStrategy):
    """Remote STEP service client.

    Request:  POST {base_url}/step-from-layout
              {"layout": {...}, "quoteNo": "...", "materialLegend": ...}
    Response: {"ok": true, "step": "..."} as JSON, or the STEP text itself.
    """

    def __init__(self, base_url: str, timeout_s: float = DEFAULT_STEP_TIMEOUT_S, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.session = session or requests

    @property
    def name(self) -> str:
        return "delegated"

    def build(self, layout, quote_no, material_legend=None, cancel=None):
        if _cancelled(cancel):
            logger.info("Delegated STEP build for quote %s cancelled before request", quote_no)
            return None

        url = self.base_url + STEP_ENDPOINT
        payload = {
            "layout": layout_to_payload(layout),
            "quoteNo": quote_no,
            "materialLegend": material_legend,
        }
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout_s)
        except requests.Timeout:
            logger.error("STEP service timed out after %.0fs (quote %s)", self.timeout_s, quote_no)
            return None
        except requests.RequestException as exc:
            logger.error("Error calling STEP service: %r (quote %s)", exc, quote_no)
            return None

        if _cancelled(cancel):
            logger.info("Delegated STEP build for quote %s cancelled; response discarded", quote_no)
            return None

        if not resp.ok:
            logger.error(
                "STEP service HTTP %s: %s (quote %s)",
                resp.status_code, (resp.text or "")[:ERROR_BODY_LIMIT], quote_no,
            )
            return None

        content_type = resp.headers.get("content-type", "")
        if "application/json" in content_type:
            return self._step_from_json(resp, quote_no)

        text = resp.text or ""
        if text.strip():
            return text
        logger.error("STEP service returned an empty body (quote %s)", quote_no)
        return None

    @staticmethod
    def _step_from_json(resp, quote_no: str) -> Optional[str]:
        try:
            body = resp.json()
        except ValueError:
            logger.error("STEP service sent malformed JSON (quote %s)", quote_no)
            return None
        step = body.get("step") if isinstance(body, dict) else None
        if isinstance(body, dict) and body.get("ok") and isinstance(step, str) and step.strip():
            return step
        logger.error("STEP service JSON missing ok:true and step text (quote %s)", quote_no)
        return None


def strategy_from_settings(settings: Settings) -> SolidModelStrategy:
    if settings.step_service_url:
        return DelegatedStepStrategy(settings.step_service_url, settings.step_service_timeout_s)
    return LocalStepStrategy(SolidMode(settings.step_mode))
