import argparse
import json
from pathlib import Path
from typing import NamedTuple

from coordinates import NormalizedCoordinate, PagePointCoordinate, to_normalized


class TextAnchor(NamedTuple):
    text: str
    font: str
    size: float
    origin_points: PagePointCoordinate
    normalized: NormalizedCoordinate
    bbox_points: tuple[float, float, float, float]

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "font": self.font,
            "size": self.size,
            "origin_points": list(self.origin_points),
            "normalized": list(self.normalized),
            "bbox_points": list(self.bbox_points),
        }


def _open_document(pdf: bytes | str | Path):
    try:
        import fitz
    except ImportError as exc:
        raise RuntimeError("PyMuPDF is required to read back text positions. Install pymupdf.") from exc
    if isinstance(pdf, (bytes, bytearray)):
        return fitz.open(stream=bytes(pdf), filetype="pdf")
    return fitz.open(Path(pdf))


def iter_spans(page):
    data = page.get_text("dict")
    for block in data.get("blocks", []):
        if block.get("type") != 0:
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                yield span


def extract_text_anchors(
    pdf: bytes | str | Path,
    page_index: int = 0,
    contains: str | None = None,
    min_len: int = 1,
) -> list[TextAnchor]:
    """Baseline origins of the text drawn on a page.

    PyMuPDF reports positions with a top-left origin; they are flipped back
    to page points (bottom-left origin) and to normalized editor coordinates,
    so a field drawn at (x, y) should read back at (x, y).
    """
    doc = _open_document(pdf)
    try:
        if page_index < 0 or page_index >= len(doc):
            raise IndexError(f"Page {page_index} out of range. PDF has {len(doc)} page(s).")

        page = doc[page_index]
        page_w = float(page.rect.width)
        page_h = float(page.rect.height)
        needle = contains.lower() if contains else None

        anchors: list[TextAnchor] = []
        for span in iter_spans(page):
            text = (span.get("text") or "").strip()
            if len(text) < min_len:
                continue
            if needle and needle not in text.lower():
                continue

            x0, y0, x1, y1 = span.get("bbox", (0.0, 0.0, 0.0, 0.0))
            origin_x, origin_y = span.get("origin", (x0, y1))
            origin = PagePointCoordinate(float(origin_x), page_h - float(origin_y))
            anchors.append(
                TextAnchor(
                    text=text,
                    font=span.get("font") or "",
                    size=float(span.get("size") or 0.0),
                    origin_points=origin,
                    normalized=to_normalized(origin, page_w, page_h),
                    bbox_points=(float(x0), page_h - float(y1), float(x1), page_h - float(y0)),
                )
            )
        return anchors
    finally:
        doc.close()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Read back where text landed in a generated PDF (page points and normalized)."
    )
    parser.add_argument("--pdf", required=True, help="Path to a generated PDF.")
    parser.add_argument("--page", type=int, default=0, help="Zero-based page index.")
    parser.add_argument("--contains", help="Filter spans containing this text (case-insensitive).")
    parser.add_argument("--min-len", type=int, default=1, help="Minimum text length to include.")
    parser.add_argument("--output-json", help="Optional JSON output path.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    anchors = extract_text_anchors(Path(args.pdf), args.page, args.contains, args.min_len)

    print(f"PDF: {args.pdf}  Page: {args.page}  Matches: {len(anchors)}")
    for idx, anchor in enumerate(anchors, start=1):
        print(
            f"{idx:03d} | '{anchor.text}' | font={anchor.font} size={anchor.size:.1f} | "
            f"origin=({anchor.origin_points.x_points:.2f},{anchor.origin_points.y_points:.2f}) | "
            f"normalized=({anchor.normalized.x_pct:.4f},{anchor.normalized.y_pct:.4f})"
        )

    if args.output_json:
        output_path = Path(args.output_json)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"pdf": args.pdf, "page": args.page, "items": [a.to_dict() for a in anchors]}
        output_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"Wrote JSON: {output_path}")


if __name__ == "__main__":
    main()
