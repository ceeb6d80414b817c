from typing import Tuple

import numpy as np


def to_blob(image_bgr: np.ndarray, input_size: Tuple[int, int] = (640, 640)) -> np.ndarray:
    """
    Stretch-resize a BGR frame to the model input and pack it as an NCHW blob.

    No letterboxing: boxes are mapped back with independent per-axis scales
    (frame_dim / input_dim), which is what `YoloDecoder` assumes.

    Returns:
        float32 array of shape (1, 3, H, W), RGB, values in [0, 1]
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for to_blob(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    in_w, in_h = input_size
    h, w = image_bgr.shape[:2]
    img = image_bgr
    if (w, h) != (in_w, in_h):
        img = cv2.resize(img, (in_w, in_h), interpolation=cv2.INTER_LINEAR)

    # BGR -> RGB, normalize, HWC -> CHW, add batch
    blob = cv2.cvtColor(img, cv2.COLOR_BGR2RGB).astype(np.float32) / 255.0
    return np.ascontiguousarray(np.transpose(blob, (2, 0, 1))[None, ...])
