#!/usr/bin/env python3
"""CLI script for verifying a live face against enrolled identities.

Exit status: 0 when accepted, 1 when rejected, 2 on operational failure
(no face, camera or store error, cancellation).

Usage:
    python scripts/verify_face.py
    python scripts/verify_face.py --threshold 0.5 --top 3
    python scripts/verify_face.py --video recordings/login.mp4
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from face_login.backends import create_extractor, resolve_threshold
from face_login.cli_utils import (
    EXIT_FAILURE,
    EXIT_OK,
    EXIT_REJECTED,
    build_session_factory,
    non_negative_float,
    print_section,
    run_cancellable,
)
from face_login.config import Config
from face_login.errors import CaptureError, FaceLoginError, NoFaceDetected, StoreError
from face_login.logging_config import setup_logging
from face_login.matcher import rank_labels
from face_login.store import JsonlEmbeddingStore
from face_login.verification import VerificationController

logger = setup_logging(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Verify a live face against enrolled identities",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--camera", type=int, default=None, help="Camera device ID (default: CAMERA_ID)"
    )
    parser.add_argument(
        "--video", type=str, default=None, help="Read frames from a video file instead"
    )
    parser.add_argument(
        "--store", type=str, default=None, help="Enrollment file (default: STORE_PATH)"
    )
    parser.add_argument(
        "--backend",
        type=str,
        choices=["dlib", "insightface"],
        default=None,
        help="Embedding backend (default: BACKEND)",
    )
    parser.add_argument(
        "--threshold",
        type=non_negative_float,
        default=None,
        help="Maximum accepted distance (default: THRESH or backend default)",
    )
    parser.add_argument(
        "--top", type=int, default=0, help="Also show the N nearest identities"
    )

    return parser.parse_args()


def main() -> int:
    """Main function."""
    args = parse_args()
    config = Config.from_env()

    store_path = Path(args.store) if args.store else config.store_path
    store = JsonlEmbeddingStore(store_path)

    print_section("Initializing Components")
    extractor = create_extractor(args.backend, config)
    threshold = args.threshold
    if threshold is None:
        threshold = resolve_threshold(config, extractor)
    print(f"Extractor loaded: {extractor}")
    try:
        print(f"Store:            {store_path} ({len(store.labels())} identities)")
    except StoreError as e:
        print(f"Store error: {e}")
        return EXIT_FAILURE
    print(f"Threshold:        {threshold}")

    controller = VerificationController(
        session_factory=build_session_factory(config, args.camera, args.video),
        extractor=extractor,
        store=store,
        threshold=threshold,
        max_attempts=config.max_frame_attempts,
        frame_timeout=config.frame_timeout,
    )

    print_section("Verifying")
    print("Look at the camera. Press Ctrl+C to cancel.")

    try:
        result = run_cancellable(lambda cancel: controller.verify(cancel))
    except NoFaceDetected as e:
        print(f"No face detected: {e}")
        return EXIT_FAILURE
    except CaptureError as e:
        print(f"Camera error ({type(e).__name__}): {e}")
        return EXIT_FAILURE
    except FaceLoginError as e:
        print(f"Verification failed ({type(e).__name__}): {e}")
        return EXIT_FAILURE

    print_section("Result")
    if result.accepted:
        print(f"ACCEPTED as '{result.matched_label}' (distance {result.distance:.4f})")
    else:
        print(f"REJECTED (nearest distance {result.distance:.4f}, threshold {threshold})")

    if args.top > 0 and controller.last_embedding is not None:
        try:
            ranked = rank_labels(controller.last_embedding, store.all_records(), topk=args.top)
        except FaceLoginError as e:
            print(f"Could not rank identities ({type(e).__name__}): {e}")
        else:
            print()
            print("Nearest identities:")
            for label, distance in ranked:
                print(f"  {label:<30} {distance:.4f}")

    return EXIT_OK if result.accepted else EXIT_REJECTED


if __name__ == "__main__":
    sys.exit(main())
