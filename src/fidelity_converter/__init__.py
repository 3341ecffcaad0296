"""High-fidelity document conversion pipeline."""

from .config import AppConfig, load_config
from .gate import ResourceGate, ResourceLock
from .models import ConversionOptions, ConversionRequest, ConversionResult, QualityTier
from .orchestrator import ConversionOrchestrator
from .preprocessing import PreprocessingEngine
from .reconstruct import PdfStructureReconstructor

__all__ = [
    "AppConfig",
    "load_config",
    "ConversionOptions",
    "ConversionOrchestrator",
    "ConversionRequest",
    "ConversionResult",
    "PdfStructureReconstructor",
    "PreprocessingEngine",
    "QualityTier",
    "ResourceGate",
    "ResourceLock",
]
