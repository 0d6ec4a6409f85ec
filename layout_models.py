from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

FieldType = Literal["text", "date", "signature", "image"]
Alignment = Literal["left", "center", "right"]
CoordinateMode = Literal["percentage", "pixels"]
OutputFormat = Literal["base64", "buffer", "uint8array"]

DEFAULT_FONT_SIZE = 12.0

# Field value lookup map: keyed by field id or field label.
UserData = dict[str, str]


class LayoutField(BaseModel):
    """One positioned field from the editor.

    x / y are normalized (0-1, top-left origin) in percentage mode and
    absolute points (top-left origin) in the legacy pixel mode.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    x: float
    y: float
    font: str = "Helvetica"
    size: float = DEFAULT_FONT_SIZE
    type: FieldType = "text"
    label: str | None = None
    value: str | None = None
    color: str | None = None
    bold: bool = False
    italic: bool = False
    align: Alignment = "left"
    rotation: float = 0.0
    width: float | None = None
    height: float | None = None
    source: Literal["data", "static"] | None = None

    @field_validator("size", mode="before")
    @classmethod
    def _default_size(cls, value: Any) -> float:
        if value is None:
            return DEFAULT_FONT_SIZE
        size = float(value)
        return size if size > 0 else DEFAULT_FONT_SIZE

    @field_validator("rotation", mode="before")
    @classmethod
    def _normalize_rotation(cls, value: Any) -> float:
        if value is None:
            return 0.0
        return float(value) % 360.0

    @field_validator("font", mode="before")
    @classmethod
    def _default_font(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return "Helvetica"
        return value.strip()


class DebugOptions(BaseModel):
    enabled: bool = False
    show_bounding_boxes: bool = True
    show_position_markers: bool = False
    show_labels: bool = True
    color: str = "#FF0000"
    line_width: float = 0.5


@dataclass(frozen=True)
class GenerationResult:
    data: str | bytes | bytearray
    format: str
    page_count: int

    def to_payload(self) -> dict[str, Any]:
        return {"data": self.data, "format": self.format, "pageCount": self.page_count}


class GenerateRequest(BaseModel):
    layout: list[LayoutField]
    user_data: dict[str, str] = Field(default_factory=dict)
    page_size: tuple[float, float] | None = None
    coordinate_mode: CoordinateMode = "percentage"
    debug: DebugOptions | None = None

    @field_validator("user_data", mode="before")
    @classmethod
    def _stringify_values(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value


class BatchGenerateRequest(BaseModel):
    layout: list[LayoutField]
    rows: list[dict[str, str]]
    page_size: tuple[float, float] | None = None
    coordinate_mode: CoordinateMode = "percentage"
    debug: DebugOptions | None = None

    @field_validator("rows", mode="before")
    @classmethod
    def _stringify_rows(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [
                {str(k): "" if v is None else str(v) for k, v in row.items()}
                if isinstance(row, dict)
                else row
                for row in value
            ]
        return value
