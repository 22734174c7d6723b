"""dlib backend: HOG/CNN detector and ResNet-34 128-D embeddings."""

from face_login.backends.dlib.extractor import DlibExtractor

__all__ = ["DlibExtractor"]
