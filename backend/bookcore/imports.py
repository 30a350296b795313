"""
Manuscript import: turn uploaded txt/docx/epub/pdf files into book content.

Every importer returns an ImportResult with the full text, a word count and
a list of chapters in reading order.
"""
import base64
import binascii
import io
import posixpath
import re
import zipfile
import zlib
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from html import escape
from typing import List, Optional

from bs4 import BeautifulSoup
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from bookcore.pagination import count_words

SUPPORTED_TYPES = ["txt", "docx", "epub", "pdf"]
IMPORT_TOTAL_STEPS = 5

_W_NS = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"
_CONTAINER_NS = {"c": "urn:oasis:names:tc:opendocument:xmlns:container"}
_OPF_NS = {"opf": "http://www.idpf.org/2007/opf"}
_CHAPTER_LINE_RE = re.compile(r"^\s*chapter\b", re.IGNORECASE)

# raised by zipfile and ElementTree on corrupt archives
_ARCHIVE_ERRORS = (zipfile.BadZipFile, zlib.error, KeyError, ET.ParseError, RuntimeError)


@dataclass
class ImportedChapter:
    title: str
    content: str
    order: int


@dataclass
class ImportResult:
    success: bool
    title: str = ""
    content: str = ""
    word_count: int = 0
    chapters: List[ImportedChapter] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "title": self.title,
            "content": self.content,
            "word_count": self.word_count,
            "chapters": [c.__dict__ for c in self.chapters],
            "error": self.error,
        }


def decode_base64_upload(payload: str) -> bytes:
    # data URLs carry a "data:<mime>;base64," prefix
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"File content is not valid base64: {e}")


def title_from_filename(file_name: str) -> str:
    base = posixpath.basename(file_name or "")
    stem, _ = posixpath.splitext(base)
    return stem or "Untitled"


def _paragraphs_to_html(paragraphs: List[str]) -> str:
    return "\n".join(f"<p>{escape(p)}</p>" for p in paragraphs if p.strip())


def _result(title: str, chapters: List[ImportedChapter]) -> ImportResult:
    content = "\n".join(c.content for c in chapters)
    text = BeautifulSoup(content, "html.parser").get_text(" ", strip=True)
    return ImportResult(
        success=True,
        title=title,
        content=content,
        word_count=count_words(text),
        chapters=chapters,
    )


# -----------------------------
# Plain text
# -----------------------------
def import_txt(data: bytes, file_name: str) -> ImportResult:
    text = data.decode("utf-8", errors="replace").replace("\r\n", "\n")
    title = title_from_filename(file_name)

    chapters: List[ImportedChapter] = []
    heading = None
    lines: List[str] = []

    def flush():
        paragraphs = [p.strip() for p in re.split(r"\n\s*\n", "\n".join(lines))]
        body = _paragraphs_to_html(paragraphs)
        if heading is None and not body:
            return
        chapter_title = heading or title
        html = f"<h2>{escape(heading)}</h2>\n{body}" if heading else body
        chapters.append(ImportedChapter(title=chapter_title, content=html, order=len(chapters) + 1))

    for line in text.split("\n"):
        if _CHAPTER_LINE_RE.match(line):
            flush()
            heading = line.strip()
            lines = []
        else:
            lines.append(line)
    flush()

    return _result(title, chapters)


# -----------------------------
# Word (.docx)
# -----------------------------
def import_docx(data: bytes, file_name: str) -> ImportResult:
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
        root = ET.fromstring(zf.read("word/document.xml"))
    except _ARCHIVE_ERRORS:
        raise ValueError("Not a valid .docx file")

    paragraphs = []
    for para in root.iter(f"{_W_NS}p"):
        texts = [node.text or "" for node in para.iter(f"{_W_NS}t")]
        paragraphs.append("".join(texts))

    title = title_from_filename(file_name)
    chapter = ImportedChapter(title=title, content=_paragraphs_to_html(paragraphs), order=1)
    return _result(title, [chapter])


# -----------------------------
# EPUB
# -----------------------------
def _epub_spine(zf: zipfile.ZipFile) -> List[str]:
    container = ET.fromstring(zf.read("META-INF/container.xml"))
    rootfile = container.find(".//c:rootfile", _CONTAINER_NS)
    if rootfile is None:
        raise ValueError("EPUB container has no rootfile")
    opf_path = rootfile.get("full-path")
    if not opf_path:
        raise ValueError("EPUB rootfile has no full-path")
    opf_dir = posixpath.dirname(opf_path)

    opf = ET.fromstring(zf.read(opf_path))
    manifest = {
        item.get("id"): item.get("href")
        for item in opf.findall(".//opf:manifest/opf:item", _OPF_NS)
    }
    spine = []
    for itemref in opf.findall(".//opf:spine/opf:itemref", _OPF_NS):
        href = manifest.get(itemref.get("idref"))
        if href:
            spine.append(posixpath.normpath(posixpath.join(opf_dir, href)))
    return spine


def import_epub(data: bytes, file_name: str) -> ImportResult:
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
        spine = _epub_spine(zf)
    except _ARCHIVE_ERRORS:
        raise ValueError("Not a valid .epub file")

    chapters: List[ImportedChapter] = []
    for path in spine:
        try:
            raw = zf.read(path)
        except KeyError:
            continue
        except (zipfile.BadZipFile, zlib.error, RuntimeError) as e:
            raise ValueError(f"Corrupt .epub entry {path}: {e}")
        doc = BeautifulSoup(raw, "html.parser")
        body = doc.body or doc
        for tag in body.find_all(["script", "style"]):
            tag.decompose()
        if not body.get_text(strip=True):
            continue

        heading = body.find(["h1", "h2", "h3"])
        chapter_title = heading.get_text(" ", strip=True) if heading else f"Chapter {len(chapters) + 1}"
        html = "".join(str(child) for child in body.children).strip()
        chapters.append(ImportedChapter(title=chapter_title, content=html, order=len(chapters) + 1))

    return _result(title_from_filename(file_name), chapters)


# -----------------------------
# PDF
# -----------------------------
def import_pdf(data: bytes, file_name: str) -> ImportResult:
    try:
        reader = PdfReader(io.BytesIO(data))
    except (PdfReadError, OSError, ValueError) as e:
        raise ValueError(f"Not a valid .pdf file: {e}")
    paragraphs = []
    try:
        for page in reader.pages:
            text = page.extract_text() or ""
            paragraphs.extend(p.strip() for p in re.split(r"\n\s*\n", text))
    except Exception as e:
        # pypdf raises many error types on malformed content streams
        raise ValueError(f"Could not extract text from .pdf: {e}")

    title = title_from_filename(file_name)
    chapter = ImportedChapter(title=title, content=_paragraphs_to_html(paragraphs), order=1)
    return _result(title, [chapter])


_IMPORTERS = {
    "txt": import_txt,
    "docx": import_docx,
    "epub": import_epub,
    "pdf": import_pdf,
}


def import_file(file_type: str, file_name: str, data: bytes) -> ImportResult:
    importer = _IMPORTERS.get((file_type or "").lower())
    if importer is None:
        raise ValueError(f"Unsupported file type: {file_type}")
    return importer(data, file_name)
