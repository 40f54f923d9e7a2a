# study_data.py
import json
import logging
import os

import cv2
import streamlit as st

from study_models import DatasetError, StudyPrompt, StudyVideo

logger = logging.getLogger(__name__)

DEFAULT_VIDEO_METADATA = {"orientation": "landscape"}


def is_remote_url(url):
    return url.startswith(("http://", "https://"))


@st.cache_data
def get_video_metadata(path):
    """Reads a video file and returns its orientation."""
    try:
        cap = cv2.VideoCapture(path)
        if not cap.isOpened():
            logger.warning("Could not open video file %s, using defaults", path)
            return dict(DEFAULT_VIDEO_METADATA)
        width = cap.get(cv2.CAP_PROP_FRAME_WIDTH)
        height = cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
        cap.release()
        orientation = "portrait" if height > width else "landscape"
        return {"orientation": orientation}
    except cv2.error as e:
        logger.warning("Error getting metadata for %s: %s, using defaults", path, e)
        return dict(DEFAULT_VIDEO_METADATA)


def parse_video(raw, prompt_number):
    if not isinstance(raw, dict):
        raise DatasetError(f"Prompt {prompt_number}: every video must be an object")
    method = raw.get('method')
    url = raw.get('url')
    if isinstance(method, bool) or not isinstance(method, int):
        raise DatasetError(f"Prompt {prompt_number}: video method must be an integer, got {method!r}")
    if not isinstance(url, str) or not url.strip():
        raise DatasetError(f"Prompt {prompt_number}: video for method {method} has no url")

    url = url.strip()
    if not is_remote_url(url) and os.path.exists(url):
        metadata = get_video_metadata(url)
        return StudyVideo(method=method, url=url, orientation=metadata['orientation'])
    return StudyVideo(method=method, url=url)


def parse_study_data(raw):
    """Validates decoded study JSON and returns the prompts as an immutable tuple."""
    if not isinstance(raw, list) or not raw:
        raise DatasetError("Study data must be a non-empty list of prompts")

    prompts = []
    for number, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            raise DatasetError(f"Prompt {number}: expected an object")
        text = item.get('prompt')
        if not isinstance(text, str) or not text.strip():
            raise DatasetError(f"Prompt {number}: missing prompt text")
        raw_videos = item.get('videos')
        if not isinstance(raw_videos, list) or not raw_videos:
            raise DatasetError(f"Prompt {number}: needs at least one video")

        videos = tuple(parse_video(v, number) for v in raw_videos)
        methods = [video.method for video in videos]
        if len(set(methods)) != len(methods):
            raise DatasetError(f"Prompt {number}: method ids must be unique, got {methods}")
        prompts.append(StudyPrompt(prompt=text, videos=videos))
    return tuple(prompts)


def load_study_data(path):
    """Loads the study prompts from a JSON file."""
    if not os.path.exists(path):
        raise DatasetError(f"Required data file not found at '{path}'.")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise DatasetError(f"Error decoding JSON from {path}: {e}") from e

    prompts = parse_study_data(raw)
    logger.info("Loaded %d prompts from %s", len(prompts), path)
    return prompts
