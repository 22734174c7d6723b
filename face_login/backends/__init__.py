"""Embedding extractor backends.

- dlib: HOG/CNN detector + ResNet-34 embeddings (128-D)
- insightface: SCRFD detector + ArcFace embeddings (512-D)

Use the factory module to create an extractor.
"""

from face_login.backends.factory import BackendType, create_extractor, resolve_threshold

__all__ = [
    "BackendType",
    "create_extractor",
    "resolve_threshold",
]
