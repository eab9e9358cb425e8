"""Prometheus metrics for PodSleuth."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Diagnosis metrics
diagnoses_total = Counter(
    "podsleuth_diagnoses_total",
    "Total diagnose calls by outcome",
    ["outcome"],
)

analysis_method_runs_total = Counter(
    "podsleuth_analysis_method_runs_total",
    "Total analysis method runs",
    ["method", "success"],
)

# Pattern metrics
pattern_matches_total = Counter(
    "podsleuth_pattern_matches_total",
    "Total pattern verdicts by winning rule",
    ["pattern"],
)

# AI metrics
ai_request_duration_seconds = Histogram(
    "podsleuth_ai_request_duration_seconds",
    "AI endpoint request duration in seconds",
    ["format"],
    buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0),
)

# Cache metrics
analysis_cache_lookups_total = Counter(
    "podsleuth_analysis_cache_lookups_total",
    "Total analysis cache lookups",
    ["result"],
)

analysis_cache_entries = Gauge(
    "podsleuth_analysis_cache_entries",
    "Number of cached diagnoses",
)

analysis_cache_evictions_total = Counter(
    "podsleuth_analysis_cache_evictions_total",
    "Total cache entries evicted by sweep",
)
