"""
Medical diagnosis backend package.

Design intent:
- Host the audio transcript reconciliation and speaker-attribution pipeline.
- Keep domain modules (asr) independent from external source adapters (internal_core.sources).
"""
