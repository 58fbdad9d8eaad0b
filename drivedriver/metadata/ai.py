"""
Client for the optional local inference endpoint (Ollama).

Every failure path returns None: enrichment is a bonus, never a reason to
lose a record or stop a walk.
"""
import codecs
import json
import logging
from pathlib import Path
from typing import Optional

import requests

from .. import config
from ..models import AIAnalysisResult

PROMPT_TEMPLATE = (
    "Analyze this file sample. File name: {name}, Extension: {ext}\n\n"
    "Sample content:\n{sample}\n\n"
    "Please provide a JSON response with the following fields:\n"
    "- file_purpose: What is the likely purpose of this file?\n"
    "- importance_level: Estimate importance (low, medium, high)\n"
    "- potential_category: Best category for this file\n"
    "- deletion_recommendation: Boolean if this seems like a temporary or unnecessary file\n"
    "- confidence_score: Your confidence in this analysis from 0.0 to 1.0"
)

IMPORTANCE_LEVELS = {'low', 'medium', 'high'}


def analyze_file_with_ai(path: Path,
                         settings: config.Config) -> Optional[AIAnalysisResult]:
    if not settings.use_ai_analysis:
        return None
    if not is_analyzable(path):
        return None

    sample = read_file_sample(path, config.AI_SAMPLE_BYTES)
    if sample is None:
        return None

    prompt = PROMPT_TEMPLATE.format(name=path.name, ext=path.suffix[1:], sample=sample)
    payload = {
        'model': settings.ollama_model,
        'prompt': prompt,
        'stream': False,
        'format': 'json',
    }
    url = f"{settings.ollama_url.rstrip('/')}/api/generate"

    try:
        response = requests.post(url, json=payload, timeout=config.AI_REQUEST_TIMEOUT)
        response.raise_for_status()
        body = response.json()
        return parse_analysis(body['response'])
    except requests.RequestException as e:
        logging.warning(f"Error communicating with Ollama: {e}")
    except (ValueError, KeyError, TypeError) as e:
        logging.debug(f"Unusable AI response for {path}: {e}")
    return None


def parse_analysis(text: str) -> AIAnalysisResult:
    """Raises ValueError/KeyError/TypeError when the model's JSON is off-shape."""
    data = json.loads(text)
    result = AIAnalysisResult.from_dict(data)
    result.importance_level = result.importance_level.lower()
    if result.importance_level not in IMPORTANCE_LEVELS:
        raise ValueError(f"Unknown importance level {result.importance_level!r}")
    if not 0.0 <= result.confidence_score <= 1.0:
        raise ValueError(f"Confidence out of range: {result.confidence_score}")
    return result


def is_analyzable(path: Path) -> bool:
    """Small text-like files only."""
    try:
        if path.stat().st_size > config.AI_MAX_FILE_SIZE:
            return False
    except OSError:
        return False
    return path.suffix[1:].lower() in config.AI_TEXT_EXTS


def read_file_sample(path: Path, max_bytes: int) -> Optional[str]:
    try:
        with path.open('rb') as f:
            data = f.read(max_bytes)
    except OSError:
        return None
    # A multi-byte character may straddle the cut, so only decode as final at EOF
    decoder = codecs.getincrementaldecoder('utf-8')()
    try:
        return decoder.decode(data, final=len(data) < max_bytes)
    except UnicodeDecodeError:
        return None
