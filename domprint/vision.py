"""Image annotation with an MLX vision-language model."""

from __future__ import annotations

import io
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, cast

from PIL import Image

from .config import VisionConfig
from .models import ImageAnnotations

logger = logging.getLogger("domprint.vision")

_ALLOW_PATTERNS = [
    "*.json",
    "*.safetensors",
    "*.model",
    "*.tiktoken",
    "*.txt",
    "*.py",
    "tokenizer*",
]

DEFAULT_ANNOTATION_PROMPT = (
    "Describe this web page image as JSON with the keys "
    '"labels" (short nouns), "logos" (brand names visible), "landmarks", '
    '"faces" (objects with an "emotion" key), and "adult", "racy", "violence" '
    '(each one of "VERY_UNLIKELY", "UNLIKELY", "POSSIBLE", "LIKELY", "VERY_LIKELY"). '
    "Return only the JSON object."
)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def _faces(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    faces: List[Dict[str, Any]] = []
    for item in value:
        if isinstance(item, dict):
            faces.append(item)
        elif str(item).strip():
            faces.append({"description": str(item).strip()})
    return faces


def _likelihood(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip().upper()


def parse_annotation_response(text: str) -> ImageAnnotations:
    """Turn model output into annotations.

    JSON objects are read field by field; anything else is taken as a
    comma-separated list of labels.
    """
    cleaned = _CODE_FENCE.sub("", (text or "").strip())
    match = _JSON_OBJECT.search(cleaned)
    if match:
        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError:
            payload = None
        if isinstance(payload, dict):
            return ImageAnnotations(
                labels=_string_list(payload.get("labels")),
                logos=_string_list(payload.get("logos")),
                landmarks=_string_list(payload.get("landmarks")),
                faces=_faces(payload.get("faces")),
                adult=_likelihood(payload.get("adult")),
                racy=_likelihood(payload.get("racy")),
                violence=_likelihood(payload.get("violence")),
            )
    labels = [label.strip() for label in cleaned.split(",") if label.strip()]
    return ImageAnnotations(labels=labels)


class VlmImageAnnotator:
    """Annotate element images with an MLX VLM, loaded on first use."""

    def __init__(self, config: Optional[VisionConfig] = None, prompt: Optional[str] = None) -> None:
        self.config = config or VisionConfig()
        self.prompt = prompt or DEFAULT_ANNOTATION_PROMPT
        self._model = None
        self._processor = None
        self._model_config = None
        self._resolved_model_path: Optional[str] = None

    def _resolve_env_override(self) -> Optional[Path]:
        for env_var in ("VISION_MODEL_DIR", "MODEL_DIR"):
            override = os.getenv(env_var)
            if not override:
                continue
            override_path = Path(override).expanduser()
            if override_path.exists():
                logger.debug("%s override detected at %s", env_var, override_path)
                return override_path
            logger.warning(
                "%s is set to %s but the path does not exist; falling back to %s",
                env_var,
                override_path,
                self.config.model_id,
            )
        return None

    def _resolve_snapshot_path(self, repo_id: str) -> Path:
        from huggingface_hub import snapshot_download

        try:
            local_path = Path(
                snapshot_download(repo_id, local_files_only=True, allow_patterns=_ALLOW_PATTERNS)
            )
            logger.info("Resolved cached vision model for %s at %s", repo_id, local_path)
            return local_path
        except Exception as err:  # pylint: disable=broad-except
            logger.info(
                "Local cache for vision model %s was not found (%s); attempting snapshot download.",
                repo_id,
                err,
            )
            local_path = Path(snapshot_download(repo_id, allow_patterns=_ALLOW_PATTERNS))
            logger.debug("Downloaded vision model %s to %s", repo_id, local_path)
            return local_path

    def _determine_model_path(self) -> str:
        if self._resolved_model_path:
            return self._resolved_model_path
        env_override = self._resolve_env_override()
        if env_override:
            self._resolved_model_path = str(env_override)
        elif Path(self.config.model_id).expanduser().exists():
            self._resolved_model_path = str(Path(self.config.model_id).expanduser())
        else:
            self._resolved_model_path = str(self._resolve_snapshot_path(self.config.model_id))
        return self._resolved_model_path

    def _ensure_model(self) -> None:
        if self._model is not None and self._processor is not None:
            return
        from mlx_vlm import load as load_vlm_model

        load_target = self._determine_model_path()
        logger.info("Loading vision model %s", load_target)
        model, processor = load_vlm_model(load_target, trust_remote_code=True)
        self._model = model
        self._processor = processor
        self._model_config = getattr(model, "config", None)
        if self._model_config is None:
            raise RuntimeError("Loaded vision model does not expose configuration")

    def _prepare_image(self, image_bytes: bytes) -> Image.Image:
        with Image.open(io.BytesIO(image_bytes)) as raw_image:
            image = raw_image.convert("RGB")
        width, height = image.size
        longest_edge = max(width, height)
        if longest_edge > self.config.max_image_side:
            scale = self.config.max_image_side / float(longest_edge)
            new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
            image = image.resize(new_size, Image.Resampling.LANCZOS)
        return image

    def annotate(self, image_bytes: bytes) -> ImageAnnotations:
        self._ensure_model()
        from mlx_vlm import generate as generate_text
        from mlx_vlm.prompt_utils import apply_chat_template

        formatted_prompt = cast(
            str,
            apply_chat_template(
                self._processor,
                self._model_config,
                [{"role": "user", "content": self.prompt}],
                num_images=1,
            ),
        )
        result = generate_text(
            self._model,
            self._processor,
            formatted_prompt,
            image=[self._prepare_image(image_bytes)],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            verbose=False,
        )
        return parse_annotation_response(result.text)
