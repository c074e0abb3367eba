"""
Transcript reconciliation module boundary for the diagnosis backend.

Design intent:
- Hold the pure fusion steps: quality metrics, optimizer, speaker detector, monologue, aligner, fallback.
- Keep every step free of I/O so it can be tested with plain values.
- Return typed, provenance-tagged segments for downstream diagnosis.
"""
