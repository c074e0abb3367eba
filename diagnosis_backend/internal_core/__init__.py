from .audio_intake import AudioValidationError, staged_audio_file, validate_audio_upload
from .config import ReconcileConfig, ServiceConfig, load_reconcile_config, load_service_config

__all__ = [
    "AudioValidationError",
    "ReconcileConfig",
    "ServiceConfig",
    "load_reconcile_config",
    "load_service_config",
    "staged_audio_file",
    "validate_audio_upload",
]
