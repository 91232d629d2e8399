"""HEIC Batch Converter.

An in-process pipeline that converts batches of HEIC/HEIF photos to JPG, PNG
or WEBP, re-deriving every image from its original when the target changes.
"""

__version__ = "0.1.0"

from heic_batch.artifacts import ArtifactLifecycleManager
from heic_batch.config import Config, create_config, get_format_from_env, get_quality_from_env
from heic_batch.controller import PipelineController
from heic_batch.detector import FormatDetector
from heic_batch.errors import (
    ConversionError,
    DecodeError,
    EncodeError,
    OverCapacityError,
    PipelineBusyError,
    StalledConversion,
)
from heic_batch.logging_config import (
    get_logger,
    log_operation_complete,
    log_operation_error,
    log_operation_start,
    set_log_level,
    setup_logging,
)
from heic_batch.models import (
    AggregateState,
    Artifact,
    BatchOutcome,
    ConversionTarget,
    ConvertedItem,
    DetectionResult,
    ImageFormat,
    ItemView,
    SourceItem,
)
from heic_batch.notifications import Notification, NotificationKind
from heic_batch.preferences import InMemoryPreferencesStore, JsonPreferencesStore, Preferences
from heic_batch.scheduler import BatchScheduler
from heic_batch.stall import StallDetector
from heic_batch.transcoder import ImageTranscoder

__all__ = [
    "AggregateState",
    "Artifact",
    "ArtifactLifecycleManager",
    "BatchOutcome",
    "BatchScheduler",
    "Config",
    "ConversionError",
    "ConversionTarget",
    "ConvertedItem",
    "DecodeError",
    "DetectionResult",
    "EncodeError",
    "FormatDetector",
    "ImageFormat",
    "ImageTranscoder",
    "InMemoryPreferencesStore",
    "ItemView",
    "JsonPreferencesStore",
    "Notification",
    "NotificationKind",
    "OverCapacityError",
    "PipelineBusyError",
    "PipelineController",
    "Preferences",
    "SourceItem",
    "StallDetector",
    "StalledConversion",
    "create_config",
    "get_format_from_env",
    "get_logger",
    "get_quality_from_env",
    "log_operation_complete",
    "log_operation_error",
    "log_operation_start",
    "set_log_level",
    "setup_logging",
]
