# core/llm_ocr.py
import base64
import io

import google.generativeai as genai
from django.conf import settings
from PIL import Image, UnidentifiedImageError

from core.exceptions import RecognitionError

PROMPT = """You read a photo of a packaged food's nutrition facts panel.
Transcribe the panel text exactly as printed, one table row per line.

Rules:
- Keep nutrient names in the label's own language (English or Indonesian).
- Keep numbers and units as printed (e.g. "Lemak total 12 g", "Sodium 150mg").
- Include the serving size line ("Serving size" / "Takaran saji") if visible.
- Do not translate, summarize, or add anything that is not printed.
- Return plain text only.
"""


def _pil_to_b64_jpeg(img: Image.Image, quality: int = 90) -> str:
    buf = io.BytesIO()
    img.convert("RGB").save(buf, format="JPEG", quality=quality, optimize=True)
    return base64.b64encode(buf.getvalue()).decode("ascii")


class GeminiRecognizer:
    """Label transcription through Gemini; same contract as the tesseract recognizer."""

    def __init__(self, api_key=None, model=None):
        self.api_key = api_key or settings.GOOGLE_API_KEY
        self.model_name = model or settings.GEMINI_MODEL
        if not self.api_key:
            raise RecognitionError("GOOGLE_API_KEY is not configured")
        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(self.model_name)

    def extract(self, image_path: str) -> str:
        try:
            with Image.open(image_path) as img:
                data = _pil_to_b64_jpeg(img)
        except (UnidentifiedImageError, OSError) as e:
            raise RecognitionError(f"invalid image: {e}") from e

        parts = [
            {"text": PROMPT},
            {"inline_data": {"mime_type": "image/jpeg", "data": data}},
        ]
        try:
            resp = self.model.generate_content(
                parts,
                generation_config={"temperature": 0.0, "max_output_tokens": 1024},
            )
            text = resp.text or ""
        except Exception as e:
            raise RecognitionError(f"API_ERROR: {e}") from e
        return text.strip()
