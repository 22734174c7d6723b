#!/usr/bin/env python3
"""CLI script for enrolling a face under an identity label.

Captures frames from the webcam (or a video file) until one holds a single
usable face, then stores its embedding. Run it again for the same label to
add more samples.

Usage:
    python scripts/enroll_face.py --label alice
    python scripts/enroll_face.py --label bob --camera 1
    python scripts/enroll_face.py --label carol --video recordings/carol.mp4
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from face_login.backends import create_extractor
from face_login.cli_utils import (
    EXIT_FAILURE,
    EXIT_OK,
    build_session_factory,
    print_section,
    run_cancellable,
)
from face_login.config import Config
from face_login.enrollment import EnrollmentController
from face_login.errors import CaptureError, FaceLoginError, NoFaceDetected, StoreError
from face_login.logging_config import setup_logging
from face_login.store import JsonlEmbeddingStore

logger = setup_logging(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Enroll a face under an identity label",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("--label", type=str, required=True, help="Identity label")
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

    return parser.parse_args()


def main() -> int:
    """Main function."""
    args = parse_args()
    config = Config.from_env()

    store_path = Path(args.store) if args.store else config.store_path
    store = JsonlEmbeddingStore(store_path)

    print_section("Face Enrollment")
    print(f"Label:             {args.label}")
    print(f"Source:            {args.video or f'camera {args.camera if args.camera is not None else config.camera_id}'}")
    print(f"Store:             {store_path}")
    try:
        print(f"Existing samples:  {store.count_for_label(args.label)}")
    except StoreError as e:
        print(f"Store error: {e}")
        return EXIT_FAILURE
    print(f"Frame budget:      {config.max_frame_attempts} x {config.frame_timeout}s")

    print_section("Initializing Components")
    extractor = create_extractor(args.backend, config)
    print(f"Extractor loaded: {extractor}")

    controller = EnrollmentController(
        session_factory=build_session_factory(config, args.camera, args.video),
        extractor=extractor,
        store=store,
        max_attempts=config.max_frame_attempts,
        frame_timeout=config.frame_timeout,
    )

    print_section("Capturing")
    print("Look at the camera. Press Ctrl+C to cancel.")

    try:
        record = run_cancellable(lambda cancel: controller.enroll(args.label, cancel))
    except NoFaceDetected as e:
        print(f"No face detected: {e}")
        print("Improve the lighting, face the camera and try again.")
        return EXIT_FAILURE
    except CaptureError as e:
        print(f"Camera error ({type(e).__name__}): {e}")
        return EXIT_FAILURE
    except FaceLoginError as e:
        print(f"Enrollment failed ({type(e).__name__}): {e}")
        return EXIT_FAILURE

    print_section("Enrollment Complete")
    print(f"Enrolled '{record.label}' at {record.enrolled_at.isoformat()}")
    print(f"Total samples for '{record.label}': {store.count_for_label(record.label)}")
    logger.info(f"Enrollment session complete for '{record.label}'")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
