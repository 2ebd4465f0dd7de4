"""
Corpus loading.

Reads every file under the corpus directory (the osquery schema reference)
into an immutable :class:`Document`.  PDF and DOCX files are parsed with
PyPDF2 and python-docx; anything else is decoded as text.
"""

from __future__ import annotations

import glob
import logging
import os
import re
from dataclasses import dataclass
from typing import List

import docx
import PyPDF2

from osquery_rag.errors import CorpusLoadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Document:
    """A unit of reference text and the path it was read from."""

    source: str
    text: str


def _normalize_text(s: str) -> str:
    """Fix ligatures and hyphenation, then collapse whitespace."""
    # soft hyphen
    s = s.replace("\u00ad", "")
    s = (s.replace("\ufb00", "ff").replace("\ufb01", "fi")
           .replace("\ufb02", "fl").replace("\ufb03", "ffi").replace("\ufb04", "ffl"))
    # inter-\nnet -> internet
    s = re.sub(r"(\w)-\s*\n\s*(\w)", r"\1\2", s)
    s = re.sub(r"[ \t]*\n+[ \t]*", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def _read_pdf(path: str) -> str:
    parts: List[str] = []
    with open(path, "rb") as f:
        reader = PyPDF2.PdfReader(f)
        for number, page in enumerate(reader.pages, start=1):
            try:
                parts.append(page.extract_text() or "")
            except Exception as exc:
                logger.warning("Skipping page %d of %s: %s", number, path, exc)
    return "\n".join(parts)


def _read_docx(path: str) -> str:
    d = docx.Document(path)
    return "\n".join(p.text for p in d.paragraphs)


def _read_text(path: str) -> str:
    with open(path, "rb") as f:
        data = f.read()
    # latin-1 accepts any byte sequence, so UTF-16 is only tried on a BOM
    if data[:2] in (b"\xff\xfe", b"\xfe\xff"):
        return data.decode("utf-16")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def _read_file(path: str) -> str:
    ext = os.path.splitext(path)[1].lower()
    if ext == ".pdf":
        return _read_pdf(path)
    if ext == ".docx":
        return _read_docx(path)
    return _read_text(path)


def load_documents(directory: str) -> List[Document]:
    """Load every readable document found under ``directory``.

    Hidden files are ignored.  A file that fails to parse is logged and
    skipped; files whose normalized text is empty are dropped.  Documents
    are returned sorted by source path so that the index is built in the
    same order on every start.

    Raises:
        CorpusLoadError: if ``directory`` does not exist, is not a
            directory or cannot be listed.
    """
    if not os.path.exists(directory):
        raise CorpusLoadError(f"Corpus directory {directory!r} does not exist")
    if not os.path.isdir(directory):
        raise CorpusLoadError(f"Corpus path {directory!r} is not a directory")
    if not os.access(directory, os.R_OK | os.X_OK):
        raise CorpusLoadError(f"Corpus directory {directory!r} is not readable")

    docs: List[Document] = []
    for file_path in sorted(glob.glob(os.path.join(directory, "**", "*"), recursive=True)):
        if os.path.isdir(file_path):
            continue
        source = os.path.relpath(file_path, directory)
        if any(part.startswith(".") for part in source.split(os.sep)):
            continue
        try:
            text = _read_file(file_path)
        except Exception as exc:
            logger.warning("Failed to parse %s: %s", file_path, exc)
            continue
        text = _normalize_text(text)
        if text:
            docs.append(Document(source=source, text=text))
    logger.info("Loaded %d documents from %s", len(docs), directory)
    return docs
