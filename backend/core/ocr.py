# core/ocr.py
import logging
from typing import List, Tuple

import cv2
import numpy as np
import pytesseract
from django.conf import settings
from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from core.exceptions import RecognitionError

logger = logging.getLogger(__name__)

# Characters expected on a nutrition facts panel. Pipes and apostrophes are
# kept on purpose: the parser knows how to repair them.
WHITELIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789,.:-()%/'| "

# 3: fully automatic page segmentation (tables)
# 6: Assume a single uniform block of text
# 4: Single column of text of variable sizes
PSM_CANDIDATES: List[int] = [3, 6, 4]

MIN_USEFUL_CHARS = 10


def _fix_orientation(img: Image.Image) -> Image.Image:
    try:
        return ImageOps.exif_transpose(img)
    except (OSError, ValueError):
        return img


def _downscale_if_huge(img: Image.Image, max_dimension: int) -> Image.Image:
    w, h = img.size
    m = max(w, h)
    if m <= max_dimension:
        return img
    scale = max_dimension / float(m)
    return img.resize((int(w * scale), int(h * scale)), Image.BICUBIC)


def pil_preprocess(img: Image.Image) -> Image.Image:
    # Grayscale → slight sharpen → upscale if small → fixed threshold
    g = img.convert("L")
    if min(g.size) < 900:
        scale = 1200.0 / min(g.size)
        g = g.resize((int(g.width * scale), int(g.height * scale)), Image.BICUBIC)
    g = g.filter(ImageFilter.UnsharpMask(radius=1.2, percent=150, threshold=3))
    return g.point(lambda p: 255 if p > 180 else 0)


def cv2_preprocess(img: Image.Image) -> Image.Image:
    arr = np.array(img.convert("RGB"))[:, :, ::-1]  # to BGR
    gray = cv2.cvtColor(arr, cv2.COLOR_BGR2GRAY)

    # Deskew (estimate angle via min area rect of the ink)
    coords = cv2.findNonZero(255 - gray)
    if coords is not None:
        angle = cv2.minAreaRect(coords)[-1]
        angle = -(90 + angle) if angle < -45 else -angle
        (h, w) = gray.shape[:2]
        M = cv2.getRotationMatrix2D((w // 2, h // 2), angle, 1.0)
        gray = cv2.warpAffine(gray, M, (w, h), flags=cv2.INTER_CUBIC, borderMode=cv2.BORDER_REPLICATE)

    thr = cv2.adaptiveThreshold(gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
                                cv2.THRESH_BINARY, 31, 11)
    if min(thr.shape[:2]) < 900:
        scale = 1200.0 / min(thr.shape[:2])
        thr = cv2.resize(thr, None, fx=scale, fy=scale, interpolation=cv2.INTER_CUBIC)
    return Image.fromarray(thr)


class TesseractRecognizer:
    """
    Blocking label OCR. Tries a few page segmentation modes and keeps the
    output with the best average word confidence.
    """

    def __init__(self, langs=None, max_dimension=None, preprocess=None):
        self.langs = langs or settings.OCR_LANGS
        self.max_dimension = max_dimension or settings.OCR_MAX_DIMENSION
        self.preprocess = preprocess or settings.OCR_PREPROCESS

    def _run(self, img: Image.Image, psm: int) -> Tuple[str, float]:
        config = f'--oem 3 --psm {psm} -l {self.langs} -c tessedit_char_whitelist="{WHITELIST}"'
        data = pytesseract.image_to_data(img, config=config, output_type=pytesseract.Output.DICT)
        # Rebuild lines so "Fat 3g" on one row stays apart from the next row
        lines = {}
        for i, word in enumerate(data["text"]):
            if not word.strip():
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            lines.setdefault(key, []).append(word)
        text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
        confs = [float(c) for c in data["conf"] if float(c) >= 0]
        avg_conf = sum(confs) / len(confs) if confs else 0.0
        return text, avg_conf

    def extract(self, image_path: str) -> str:
        try:
            with Image.open(image_path) as raw:
                img = _downscale_if_huge(_fix_orientation(raw).convert("RGB"), self.max_dimension)
        except (UnidentifiedImageError, OSError) as e:
            raise RecognitionError(f"invalid image: {e}") from e

        proc = cv2_preprocess(img) if self.preprocess == "cv2" else pil_preprocess(img)

        try:
            best_text, best_conf = "", -1.0
            for psm in PSM_CANDIDATES:
                t, conf = self._run(proc, psm)
                if conf > best_conf:
                    best_conf, best_text = conf, t

            if len(best_text.strip()) < MIN_USEFUL_CHARS:
                fallback = pytesseract.image_to_string(proc, config=f"-l {self.langs} --oem 3 --psm 6")
                if len(fallback.strip()) > len(best_text.strip()):
                    best_text = fallback
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, RuntimeError) as e:
            raise RecognitionError(f"OCR processing failed: {e}") from e

        logger.debug("OCR %s: %d chars, avg conf %.1f", image_path, len(best_text), best_conf)
        return best_text.strip()
