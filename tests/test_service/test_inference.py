"""Tests for the simulated inference pipeline steps."""

import random

import pytest

from inference_tracer.service.inference import (
    MODEL_VERSION,
    InferenceError,
    postprocess_results,
    preprocess_data,
    run_inference,
    validate_input,
)


def test_preprocess_uppercases_input() -> None:
    processed = preprocess_data({"input": "hello"})
    assert processed["processed_input"] == "HELLO"
    assert "preprocessed_at" in processed


@pytest.mark.parametrize("payload", [{}, {"input": None}])
def test_preprocess_requires_input(payload: dict) -> None:
    with pytest.raises(InferenceError, match="Missing required 'input' field"):
        preprocess_data(payload)


def test_run_inference_is_seedable() -> None:
    processed = {"processed_input": "HELLO"}
    first = run_inference(processed, rng=random.Random(1))
    second = run_inference(processed, rng=random.Random(1))
    assert first == second
    assert first["prediction"] == "PROCESSED: HELLO"
    assert 0.8 <= first["confidence"] <= 0.99
    assert first["model_version"] == MODEL_VERSION


def test_postprocess_rounds_confidence() -> None:
    result = postprocess_results(
        {"prediction": "PROCESSED: X", "confidence": 0.912345, "model_version": "v1"}
    )
    assert result == {
        "final_result": "PROCESSED: X",
        "confidence_score": 0.912,
        "model_metadata": "v1",
    }


def test_validate_input() -> None:
    assert validate_input({"input": "abc"}) == "Validated: abc"
    with pytest.raises(InferenceError, match="No input provided"):
        validate_input({})
