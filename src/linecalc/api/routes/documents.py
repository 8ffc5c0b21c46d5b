"""Document evaluation routes.

- POST /v1/documents/evaluate: run one pass over the submitted lines

Each request evaluates on a fresh orchestrator; nothing is kept between requests.
"""

from __future__ import annotations

import logging
from collections import Counter

from fastapi import APIRouter

from linecalc.api.errors import ApiErrorCode, DocumentRequestError
from linecalc.api.schemas import EvaluateDocumentRequest, EvaluateDocumentResponse, SettingsIn
from linecalc.config import CalcSettings
from linecalc.document.orchestrator import DocumentOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["Documents"])


def _settings_from(overrides: SettingsIn | None) -> CalcSettings:
    # SettingsConfigError is answered as INVALID_SETTINGS by the app handler.
    settings = CalcSettings()
    if overrides is None:
        return settings
    return settings.with_overrides(**overrides.model_dump(exclude_none=True))


@router.post("/documents/evaluate", response_model=EvaluateDocumentResponse)
def evaluate_document(body: EvaluateDocumentRequest) -> EvaluateDocumentResponse:
    """Evaluate a document top to bottom and return per-line results."""
    settings = _settings_from(body.settings)
    records = body.to_records()

    counts = Counter(record.line_id for record in records)
    duplicates = sorted(line_id for line_id, n in counts.items() if n > 1)
    if duplicates:
        raise DocumentRequestError(
            ApiErrorCode.DUPLICATE_LINE_ID,
            "Line ids must be unique",
            details={"line_ids": duplicates},
        )

    orchestrator = DocumentOrchestrator()
    result = orchestrator.run_pass(records, settings, today=body.today)
    logger.debug("Evaluated document: lines=%d errors=%d", len(records), result.error_count)

    payload = result.to_dict(settings)
    payload["live_metrics"] = orchestrator.metrics.to_dict()
    return EvaluateDocumentResponse.model_validate(payload)
