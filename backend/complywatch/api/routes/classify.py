"""
ComplyWatch Classification API

Classify messages, ingest them end to end, and report pipeline efficiency.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from complywatch.api.dependencies import get_ingestion_service, get_tiered_classifier
from complywatch.models.classification import ClassificationResult
from complywatch.models.message import EmployeeContext, Message

logger = logging.getLogger(__name__)

router = APIRouter(tags=["classification"])


class ClassifyRequest(BaseModel):
    """Message and the employee it is attributed to."""
    message: Message
    employee: EmployeeContext = Field(..., description="Sender context")


@router.post("/classify", response_model=ClassificationResult)
async def classify_message(
    request: ClassifyRequest,
    classifier = Depends(get_tiered_classifier),
):
    """
    Classify one message.

    Always returns a result; internal failures produce the fallback result
    with `error` set.
    """
    return await classifier.classify(request.message, request.employee)


@router.post("/ingest")
async def ingest_message(
    request: ClassifyRequest,
    service = Depends(get_ingestion_service),
) -> Dict[str, Any]:
    """
    Classify a message, record its violations and evaluate policies.
    """
    result = await service.ingest(request.message, request.employee)
    logger.info(
        f"Ingested {request.message.message_id}: {len(result.violation_ids)} violation(s), "
        f"{result.policies_triggered} policy trigger(s)"
    )
    return result.to_dict()


@router.get("/stats")
async def get_processing_stats(
    classifier = Depends(get_tiered_classifier),
) -> Dict[str, Any]:
    """Processing counters and estimated LLM cost savings."""
    return classifier.get_stats()
