from .metrics import PipelineMetrics, get_metrics

__all__ = ["PipelineMetrics", "get_metrics"]
