import argparse
import base64
import io
import json
import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError as PydanticValidationError
from pypdf import PdfReader, PdfWriter
from reportlab.pdfgen import canvas

from coordinates import PAGE_SIZES, page_size_for, validate_page_size
from errors import BatchLimitExceededError, PdfGenerationError, ValidationError
from field_renderer import is_renderable, render_field, resolve_field_text
from font_loader import EmbeddedFont, FontKey, FontLoader, font_key
from layout_models import DebugOptions, GenerationResult, LayoutField, UserData
from settings import configure_logging, get_settings

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("base64", "buffer", "uint8array")

DIAGNOSTIC_MARKERS: list[tuple[str, float, float, str]] = [
    ("TOP-LEFT", 0.1, 0.1, "left"),
    ("TOP-RIGHT", 0.9, 0.1, "right"),
    ("CENTER", 0.5, 0.5, "center"),
    ("BOTTOM-LEFT", 0.1, 0.9, "left"),
    ("BOTTOM-RIGHT", 0.9, 0.9, "right"),
]


@dataclass
class GenerationOptions:
    page_size: tuple[float, float] | None = None
    coordinate_mode: str = "percentage"
    debug: DebugOptions | None = None
    # Optional background PDF; generated pages are stamped onto this page.
    template_pdf: bytes | None = None
    template_page: int = 0


def coerce_layout(layout: Iterable[LayoutField | dict]) -> list[LayoutField]:
    fields: list[LayoutField] = []
    try:
        for item in layout:
            fields.append(item if isinstance(item, LayoutField) else LayoutField.model_validate(item))
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid layout field: {exc}") from exc
    return fields


def check_output_format(output_format: str) -> None:
    if output_format not in OUTPUT_FORMATS:
        raise ValidationError(
            f"Unknown output format '{output_format}'. Expected one of: {', '.join(OUTPUT_FORMATS)}"
        )


def encode_output(pdf_bytes: bytes, output_format: str) -> str | bytes | bytearray:
    check_output_format(output_format)
    if output_format == "base64":
        return base64.b64encode(pdf_bytes).decode("ascii")
    if output_format == "buffer":
        return bytes(pdf_bytes)
    return bytearray(pdf_bytes)


def template_page_size(template_pdf: bytes, page_index: int = 0) -> tuple[float, float]:
    reader = PdfReader(io.BytesIO(template_pdf))
    if page_index < 0 or page_index >= len(reader.pages):
        raise ValidationError(
            f"Template page={page_index} but template has {len(reader.pages)} page(s)."
        )
    page = reader.pages[page_index]
    return float(page.mediabox.width), float(page.mediabox.height)


def resolve_page_size(options: GenerationOptions) -> tuple[float, float]:
    if options.template_pdf:
        return template_page_size(options.template_pdf, options.template_page)
    try:
        return validate_page_size(options.page_size)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def collect_font_keys(layout: Iterable[LayoutField]) -> list[FontKey]:
    keys = (font_key(field.font, field.bold, field.italic) for field in layout if is_renderable(field))
    return list(dict.fromkeys(keys))


def load_font_map(layout: Iterable[LayoutField], resolver: FontLoader) -> dict[FontKey, EmbeddedFont]:
    return {key: resolver.resolve(key.family, key.bold, key.italic) for key in collect_font_keys(layout)}


def merge_onto_template(overlay_pdf: bytes, template_pdf: bytes, page_index: int = 0) -> bytes:
    overlay = PdfReader(io.BytesIO(overlay_pdf))
    writer = PdfWriter()
    for overlay_page in overlay.pages:
        # A fresh reader per page so every output page owns its own copy.
        page = PdfReader(io.BytesIO(template_pdf)).pages[page_index]
        page.merge_page(overlay_page)
        writer.add_page(page)
    out = io.BytesIO()
    writer.write(out)
    return out.getvalue()


def build_document(
    layout: list[LayoutField],
    rows: list[UserData],
    options: GenerationOptions,
    resolver: FontLoader,
) -> bytes:
    """Draw one page per row into a single document and serialize it."""
    page_size = resolve_page_size(options)

    packet = io.BytesIO()
    c = canvas.Canvas(packet, pagesize=page_size)
    font_map = load_font_map(layout, resolver)

    for row in rows:
        for field in layout:
            text = resolve_field_text(field, row)
            if not text or not is_renderable(field):
                continue
            render_field(
                c,
                field,
                text,
                font_map,
                page_size,
                resolver,
                coordinate_mode=options.coordinate_mode,
                debug=options.debug,
            )
        c.showPage()

    try:
        c.save()
        pdf_bytes = packet.getvalue()
        if options.template_pdf:
            pdf_bytes = merge_onto_template(pdf_bytes, options.template_pdf, options.template_page)
    except Exception as exc:
        raise PdfGenerationError(f"Failed to serialize PDF: {exc}") from exc
    return pdf_bytes


def generate_pdf(
    layout: Iterable[LayoutField | dict],
    user_data: UserData,
    output_format: str = "base64",
    options: GenerationOptions | None = None,
    resolver: FontLoader | None = None,
) -> GenerationResult:
    """Single certificate: one page, one data row."""
    check_output_format(output_format)
    fields = coerce_layout(layout)
    pdf_bytes = build_document(fields, [user_data or {}], options or GenerationOptions(), resolver or FontLoader())
    return GenerationResult(encode_output(pdf_bytes, output_format), output_format, 1)


def generate_batch_pdf(
    layout: Iterable[LayoutField | dict],
    rows: list[UserData],
    output_format: str = "base64",
    options: GenerationOptions | None = None,
    resolver: FontLoader | None = None,
) -> list[GenerationResult]:
    """One complete document per row. Fonts are resolved again for every document.

    Only suitable for a handful of rows; prefer generate_merged_batch_pdf().
    """
    check_output_format(output_format)
    fields = coerce_layout(layout)
    opts = options or GenerationOptions()
    loader = resolver or FontLoader()
    results: list[GenerationResult] = []
    for row in rows:
        pdf_bytes = build_document(fields, [row or {}], opts, loader)
        results.append(GenerationResult(encode_output(pdf_bytes, output_format), output_format, 1))
    return results


def generate_merged_batch_pdf(
    layout: Iterable[LayoutField | dict],
    rows: list[UserData],
    output_format: str = "base64",
    options: GenerationOptions | None = None,
    resolver: FontLoader | None = None,
    max_rows: int | None = None,
) -> GenerationResult:
    """All rows as pages of one document; fonts are resolved once and shared."""
    if max_rows is not None and len(rows) > max_rows:
        raise BatchLimitExceededError(max_rows, len(rows))
    if not rows:
        raise ValidationError("No data rows provided")
    check_output_format(output_format)

    fields = coerce_layout(layout)
    pdf_bytes = build_document(fields, [row or {} for row in rows], options or GenerationOptions(), resolver or FontLoader())
    logger.info("Generated merged batch: %d page(s), %d bytes", len(rows), len(pdf_bytes))
    return GenerationResult(encode_output(pdf_bytes, output_format), output_format, len(rows))


def diagnostic_layout(font_size: float = 10.0) -> list[LayoutField]:
    fields = []
    for name, x, y, align in DIAGNOSTIC_MARKERS:
        label = f"{name} ({x * 100:.0f}%,{y * 100:.0f}%)"
        fields.append(
            LayoutField(
                id=f"diag-{name.lower()}",
                x=x,
                y=y,
                font="Helvetica",
                size=font_size,
                type="text",
                label=label,
                value=label,
                align=align,
            )
        )
    return fields


def generate_diagnostic_pdf(
    output_format: str = "base64",
    page_size: tuple[float, float] | None = None,
    resolver: FontLoader | None = None,
) -> GenerationResult:
    """Self-check page: each marker must land where its label says it is."""
    debug = DebugOptions(
        enabled=True,
        show_bounding_boxes=True,
        show_position_markers=True,
        show_labels=True,
    )
    options = GenerationOptions(page_size=page_size, coordinate_mode="percentage", debug=debug)
    return generate_pdf(diagnostic_layout(), {}, output_format, options, resolver)


# ── CLI ───────────────────────────────────────────────────────────────────────


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Render layout fields onto certificate pages and write a PDF."
    )
    parser.add_argument("--fields", help="Path to layout JSON (list of fields or {'fields': [...]}).")
    parser.add_argument("--data-json", help="Path to JSON with one data row (object) or many (list).")
    parser.add_argument("--output", required=True, help="Output PDF path (a directory with --split).")
    parser.add_argument(
        "--batch",
        action="store_true",
        help="Render every data row as a page of one merged PDF.",
    )
    parser.add_argument(
        "--split",
        action="store_true",
        help="Render every data row as its own PDF and zip them. Output path becomes a directory.",
    )
    parser.add_argument(
        "--page-size",
        default="a4",
        choices=sorted(PAGE_SIZES),
        help="Page size when no template is given.",
    )
    parser.add_argument("--template", help="Optional background PDF to stamp fields onto.")
    parser.add_argument("--template-page", type=int, default=0, help="Template page index.")
    parser.add_argument(
        "--coordinate-mode",
        default="percentage",
        choices=["percentage", "pixels"],
        help="How field x/y are expressed.",
    )
    parser.add_argument("--debug", action="store_true", help="Draw bounding boxes and labels.")
    parser.add_argument(
        "--show-markers",
        action="store_true",
        help="With --debug, also draw anchor crosshairs.",
    )
    parser.add_argument(
        "--max-rows",
        type=int,
        default=None,
        help="Reject batches larger than this (defaults to CERTGEN_MAX_BATCH_SIZE).",
    )
    parser.add_argument(
        "--diagnostic",
        action="store_true",
        help="Write the coordinate self-check PDF and exit.",
    )
    return parser.parse_args(argv)


def load_layout(path: Path) -> tuple[list[LayoutField], tuple[float, float] | None]:
    with path.open("r", encoding="utf-8") as f:
        payload = json.load(f)
    page_size = None
    if isinstance(payload, dict):
        raw_size = payload.get("page_size")
        page_size = tuple(raw_size) if raw_size else None
        payload = payload.get("fields", [])
    return coerce_layout(payload), page_size


def load_rows(path: Path | None) -> list[UserData]:
    if path is None:
        return [{}]
    payload: Any = json.loads(path.read_text(encoding="utf-8"))
    rows = payload if isinstance(payload, list) else [payload]
    if not rows:
        raise ValueError("Data JSON has no rows.")
    return [{str(k): "" if v is None else str(v) for k, v in row.items()} for row in rows]


def write_split_batch(results: list[GenerationResult], output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    pdf_files = []
    for idx, result in enumerate(results):
        output_file = output_dir / f"certificate_{idx + 1:04d}.pdf"
        output_file.write_bytes(result.data)
        pdf_files.append(output_file)
        print(f"  [{idx + 1}/{len(results)}] {output_file.name}")

    zip_path = output_dir.parent / f"{output_dir.name}.zip"
    with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zipf:
        for pdf_file in pdf_files:
            zipf.write(pdf_file, pdf_file.name)
    return zip_path


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)
    output_path = Path(args.output)
    resolver = FontLoader(settings)

    if args.diagnostic:
        result = generate_diagnostic_pdf("buffer", page_size_for(args.page_size), resolver)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(result.data)
        print(f"Wrote diagnostic PDF: {output_path}")
        return

    if not args.fields:
        raise ValueError("Provide --fields.")
    if args.batch and args.split:
        raise ValueError("Use either --batch or --split, not both.")

    layout, layout_page_size = load_layout(Path(args.fields))
    rows = load_rows(Path(args.data_json) if args.data_json else None)

    options = GenerationOptions(
        page_size=layout_page_size or page_size_for(args.page_size),
        coordinate_mode=args.coordinate_mode,
        debug=DebugOptions(enabled=True, show_position_markers=args.show_markers) if args.debug else None,
        template_pdf=Path(args.template).read_bytes() if args.template else None,
        template_page=args.template_page,
    )
    max_rows = args.max_rows if args.max_rows is not None else settings.max_batch_size

    if args.split:
        if len(rows) > max_rows:
            raise BatchLimitExceededError(max_rows, len(rows))
        print(f"Generating {len(rows)} certificates...")
        results = generate_batch_pdf(layout, rows, "buffer", options, resolver)
        zip_path = write_split_batch(results, output_path)
        print(f"Done! Generated {len(results)} certificates in {output_path}")
        print(f"Created ZIP archive: {zip_path}")
        return

    if args.batch:
        result = generate_merged_batch_pdf(layout, rows, "buffer", options, resolver, max_rows=max_rows)
    else:
        result = generate_pdf(layout, rows[0], "buffer", options, resolver)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(result.data)
    print(f"Wrote: {output_path} ({result.page_count} page(s))")


if __name__ == "__main__":
    main()
