"""Training data collection and batch retraining."""
from .recorder import TrainingDataRecorder, examples_to_frame, label_for_score

__all__ = ["TrainingDataRecorder", "examples_to_frame", "label_for_score"]
