# -*- coding: utf-8 -*-

"""
debug.py
Sidecar images showing what the detector and mapper saw.
"""

from __future__ import annotations

import logging
import os
from typing import List, Sequence, Tuple

import cv2
import fitz  # PyMuPDF
import numpy as np

from .mapper import split_row
from .models import OMRGrid


FILLED_BGR = (0, 0, 255)
EMPTY_BGR = (255, 0, 0)
GROUP_BGR = (0, 160, 0)


def safe_makedirs(path: str) -> None:
    if path and not os.path.isdir(path):
        os.makedirs(path, exist_ok=True)


def render_grid(gray: np.ndarray, grid: OMRGrid, options_per_question: int) -> np.ndarray:
    """Annotated BGR copy of `gray`: circles by fill state, boxes per question."""
    dbg = cv2.cvtColor(np.asarray(gray), cv2.COLOR_GRAY2BGR)

    qnum = 1
    for row in grid:
        for group in split_row(row, options_per_question):
            for c in group:
                color = FILLED_BGR if c.filled else EMPTY_BGR
                cv2.circle(dbg, (int(c.x), int(c.y)), int(c.radius), color, 2)

            x0 = min(c.x - c.radius for c in group)
            y0 = min(c.y - c.radius for c in group)
            x1 = max(c.x + c.radius for c in group)
            y1 = max(c.y + c.radius for c in group)
            cv2.rectangle(dbg, (x0 - 2, y0 - 2), (x1 + 2, y1 + 2), GROUP_BGR, 1)
            cv2.putText(
                dbg,
                f"Q{qnum}",
                (x0, max(0, y0 - 5)),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.4,
                GROUP_BGR,
                1,
                cv2.LINE_AA,
            )
            qnum += 1
    return dbg


def write_debug_image(img_bgr: np.ndarray, out_dir: str, tag: str) -> str:
    safe_makedirs(out_dir)
    out_path = os.path.join(out_dir, f"{tag}_debug.png")
    if not cv2.imwrite(out_path, img_bgr):
        raise OSError(f"Failed to write debug image: {out_path}")
    logging.info("Debug image written: %s", out_path)
    return out_path


def save_images_as_pdf(
    pages: Sequence[Tuple[str, np.ndarray]], output_pdf_path: str, dpi: int = 150
) -> None:
    """One PDF page per (tag, BGR image)."""
    doc = fitz.open()
    try:
        for tag, img_bgr in pages:
            h, w = img_bgr.shape[:2]
            width_pt = (w / float(dpi)) * 72.0
            height_pt = (h / float(dpi)) * 72.0

            ok, encoded = cv2.imencode(".png", img_bgr)
            if not ok:
                logging.warning("Could not encode debug page %s; skipped.", tag)
                continue

            page = doc.new_page(width=width_pt, height=height_pt)
            rect = fitz.Rect(0, 0, width_pt, height_pt)
            page.insert_image(rect, stream=encoded.tobytes(), keep_proportion=False)
        if doc.page_count:
            doc.save(output_pdf_path, deflate=True, garbage=4)
            logging.info("Debug report written: %s", output_pdf_path)
    finally:
        doc.close()


def debug_pages_tag(file_name: str) -> str:
    base = os.path.splitext(os.path.basename(file_name))[0]
    return "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in base) or "sheet"


class DebugCollector:
    """Accumulates annotated sheets, then writes PNGs and one PDF report."""

    def __init__(self, out_dir: str) -> None:
        self.out_dir = out_dir
        self.pages: List[Tuple[str, np.ndarray]] = []

    def add(
        self, file_name: str, gray: np.ndarray, grid: OMRGrid, options_per_question: int
    ) -> None:
        tag = debug_pages_tag(file_name)
        img = render_grid(gray, grid, options_per_question)
        write_debug_image(img, self.out_dir, tag)
        self.pages.append((tag, img))

    def write_report(self, name: str = "debug_report.pdf") -> None:
        if not self.pages:
            return
        safe_makedirs(self.out_dir)
        save_images_as_pdf(self.pages, os.path.join(self.out_dir, name))
