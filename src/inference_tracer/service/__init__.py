"""Inference HTTP service embedding the request tracer."""
