from __future__ import annotations

from dataclasses import dataclass
from html import escape
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from .config import MAX_MARKDOWN_CHARS
from .errors import ValidationError
from .security import filename_problem


PDF_SIGNATURE = b"%PDF-"


class ConversionRequest(BaseModel):
    """One Markdown to PDF request as received from the editor."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    markdown: str
    filename: str

    @field_validator("markdown")
    @classmethod
    def _markdown_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Markdown content is required")
        if len(value) > MAX_MARKDOWN_CHARS:
            raise ValueError(f"Markdown content exceeds {MAX_MARKDOWN_CHARS} characters")
        return value

    @field_validator("filename")
    @classmethod
    def _filename_is_safe(cls, value: str) -> str:
        problem = filename_problem(value)
        if problem:
            raise ValueError(problem)
        return value.strip()


def _describe_errors(exc: PydanticValidationError) -> list[dict[str, Any]]:
    # pydantic's raw error dicts can hold exception objects in "ctx";
    # keep only JSON-safe fields.
    described = []
    for err in exc.errors(include_url=False):
        message = str(err.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        described.append({
            "path": [p for p in err.get("loc", ())],
            "message": message,
            "code": str(err.get("type", "invalid")),
        })
    return described


def parse_request(payload: ConversionRequest | Mapping[str, Any] | Any) -> ConversionRequest:
    """Validate a request payload, raising :class:`ValidationError` with field details.

    Already-built requests are re-validated so that instances created with
    ``model_construct`` cannot skip the checks.
    """
    if isinstance(payload, ConversionRequest):
        payload = {"markdown": payload.markdown, "filename": payload.filename}
    if not isinstance(payload, Mapping):
        raise ValidationError([{
            "path": [],
            "message": "Request body must be a JSON object",
            "code": "model_type",
        }])
    try:
        return ConversionRequest.model_validate(dict(payload))
    except PydanticValidationError as exc:
        raise ValidationError(_describe_errors(exc)) from exc


@dataclass(frozen=True)
class RenderedDocument:
    """A complete, static HTML document ready for the render engine."""

    html_body: str
    style_sheet: str
    title: str = "Markdown Document"
    lang: str = "en"

    @property
    def html(self) -> str:
        return (
            "<!DOCTYPE html>\n"
            f'<html lang="{escape(self.lang)}">\n'
            "<head>\n"
            '<meta charset="UTF-8">\n'
            f"<title>{escape(self.title)}</title>\n"
            f"<style>\n{self.style_sheet}\n</style>\n"
            "</head>\n"
            '<body>\n<article class="markdown-body">\n'
            f"{self.html_body}\n"
            "</article>\n</body>\n"
            "</html>\n"
        )


@dataclass(frozen=True)
class PageMargins:
    top: str = "0.5in"
    right: str = "0.75in"
    bottom: str = "0.5in"
    left: str = "0.75in"

    def as_dict(self) -> dict[str, str]:
        return {"top": self.top, "right": self.right, "bottom": self.bottom, "left": self.left}


DEFAULT_PAGE_FORMAT = "A4"
DEFAULT_MARGINS = PageMargins()


@dataclass(frozen=True)
class PdfArtifact:
    data: bytes

    @property
    def byte_length(self) -> int:
        return len(self.data)

    @property
    def has_pdf_signature(self) -> bool:
        return self.data.startswith(PDF_SIGNATURE)
