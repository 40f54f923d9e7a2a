# study_models.py
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

RESPONSE_FIELDS = ("user_id", "prompt", "selected_method", "timestamp")


class StudyError(Exception):
    """Base class for every error raised by the study app."""


class DatasetError(StudyError):
    """The study data file is missing or does not describe a valid study."""


class MalformedRecordError(StudyError):
    """A row read back from the response store is missing or has bad fields."""


@dataclass(frozen=True)
class StudyVideo:
    method: int
    url: str
    orientation: str = "landscape"


@dataclass(frozen=True)
class StudyPrompt:
    prompt: str
    videos: Tuple[StudyVideo, ...] = field(default_factory=tuple)

    def has_method(self, method_id):
        return any(video.method == method_id for video in self.videos)


@dataclass(frozen=True)
class SurveyResponse:
    user_id: str
    prompt: str
    selected_method: int
    timestamp: str

    def to_row(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id, 'prompt': self.prompt,
            'selected_method': self.selected_method, 'timestamp': self.timestamp,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "SurveyResponse":
        """Builds a response from a store row, rejecting missing or unusable fields."""
        if not isinstance(row, dict):
            raise MalformedRecordError(f"Expected a mapping, got {type(row).__name__}")
        missing = [name for name in RESPONSE_FIELDS if name not in row or row[name] is None]
        if missing:
            raise MalformedRecordError(f"Response row is missing field(s): {', '.join(missing)}")

        user_id = str(row['user_id']).strip()
        timestamp = str(row['timestamp']).strip()
        if not user_id or not timestamp:
            raise MalformedRecordError("Response row has an empty user_id or timestamp")

        raw_method = row['selected_method']
        # Sheets hands numbers back as int, float or str depending on the cell
        if isinstance(raw_method, bool):
            raise MalformedRecordError(f"selected_method is not an integer: {raw_method!r}")
        try:
            if isinstance(raw_method, float):
                if not raw_method.is_integer():
                    raise ValueError(raw_method)
                selected_method = int(raw_method)
            else:
                selected_method = int(str(raw_method).strip())
        except ValueError:
            raise MalformedRecordError(f"selected_method is not an integer: {raw_method!r}") from None

        return cls(user_id=user_id, prompt=str(row['prompt']), selected_method=selected_method, timestamp=timestamp)
