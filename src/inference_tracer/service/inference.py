"""Simulated inference pipeline.

These are plain functions with no tracing inside them; the endpoint wraps
each call with ``Tracer.trace``. They stand in for a real model and only
shape the payload.
"""

import random
from datetime import datetime, timezone
from typing import Any

MODEL_VERSION = "v1.2.3"


class InferenceError(Exception):
    """Raised when a request cannot be processed by the pipeline."""


def preprocess_data(payload: dict[str, Any]) -> dict[str, Any]:
    """Validate and normalize the request payload.

    Raises:
        InferenceError: If the payload has no ``input`` field.
    """
    if payload.get("input") is None:
        raise InferenceError("Missing required 'input' field")

    return {
        "processed_input": str(payload["input"]).upper(),
        "preprocessed_at": datetime.now(timezone.utc).isoformat(),
    }


def run_inference(processed: dict[str, Any], rng: random.Random | None = None) -> dict[str, Any]:
    rng = rng or random
    return {
        "prediction": f"PROCESSED: {processed['processed_input']}",
        "confidence": rng.uniform(0.8, 0.99),
        "model_version": MODEL_VERSION,
    }


def postprocess_results(inference_result: dict[str, Any]) -> dict[str, Any]:
    return {
        "final_result": inference_result["prediction"],
        "confidence_score": round(inference_result["confidence"], 3),
        "model_metadata": inference_result["model_version"],
    }


def validate_input(payload: dict[str, Any]) -> str:
    """Validation step of the standalone tracing demo."""
    if payload.get("input") is None:
        raise InferenceError("No input provided")
    return f"Validated: {payload['input']}"
