"""InsightFace backend: SCRFD detector and ArcFace 512-D embeddings."""

from face_login.backends.insightface.extractor import InsightFaceExtractor

__all__ = ["InsightFaceExtractor"]
