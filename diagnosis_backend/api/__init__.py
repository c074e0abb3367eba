"""
API orchestration boundary for the diagnosis backend.

Design intent:
- Expose a thin, typed transcription endpoint over the reconciliation pipeline.
- Keep request validation explicit and failure modes predictable.
"""
