from .paths import PipelinePaths, build_pipeline_paths
from .runtime import get_runtime_info

__all__ = [
    "PipelinePaths",
    "build_pipeline_paths",
    "get_runtime_info",
]
