"""Flashcard Generation Gateway.

Turns generation requests into validated, schema-conformant results by
delegating to an AI completion provider, with:
  - Credential Pool (per-request multi-key failover)
  - Backoff Policy (capped exponential backoff with jitter, error classes)
  - Schema Builder (structured-output constraints, dynamic for distractors)
  - Vendor Adapters (single-shot provider calls)
  - Failover Orchestrator (retry on the same key, rotate on quota/fatal)
  - Response Normalizer (tolerant parsing into canonical shapes)
  - Batch Chunker (concurrent distractor sub-batches)
  - Action Dispatcher (validation, routing, ``{data}`` / ``{error}`` envelope)
"""
