import io
import re

import pdfplumber

# Common UTF-8-read-as-cp1252 artefacts in extracted resumes
_MOJIBAKE = {
    "â€™": "'",
    "â€œ": '"',
    "â€\x9d": '"',
    "â€“": "-",
    "â€”": "-",
    "â€¢": "•",
    "Â": "",
}

_BULLET_GLYPHS_RE = re.compile(r"[•·∙◦⦿⦾◆◇■□●○▪►]\s*")
_DASH_BULLET_RE = re.compile(r"^[ \t]*[-–—][ \t]+", re.MULTILINE)
_HYPHEN_BREAK_RE = re.compile(r"([a-z])-\s*\n\s*([a-z])", re.IGNORECASE)
_SPACES_RE = re.compile(r"[ \t]{2,}")
_BLANK_LINES_RE = re.compile(r"\n\s*\n(\s*\n)+")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0E-\x1F\x7F]")
_SPACED_EMAIL_RE = re.compile(r"([\w.%+-]+)\s+@\s+([\w.-]+\.[A-Za-z]{2,})")


def extract_text(pdf_bytes: bytes) -> str:
    """Extract all text from a PDF file."""
    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n\n".join(pages).strip()


def decode_text(data: bytes) -> str:
    """Decode a plain-text upload."""
    return data.decode("utf-8", errors="replace").lstrip("\ufeff")


def clean_text(text: str) -> str:
    """Normalize extraction artefacts while keeping paragraph breaks."""
    for bad, good in _MOJIBAKE.items():
        text = text.replace(bad, good)
    text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\f", "\n\n")
    text = _CONTROL_RE.sub("", text)
    text = _HYPHEN_BREAK_RE.sub(r"\1\2", text)
    text = _BULLET_GLYPHS_RE.sub("• ", text)
    text = _DASH_BULLET_RE.sub("• ", text)
    text = _SPACED_EMAIL_RE.sub(r"\1@\2", text)
    text = _SPACES_RE.sub(" ", text)
    text = "\n".join(line.rstrip() for line in text.split("\n"))
    text = _BLANK_LINES_RE.sub("\n\n", text)
    return text.strip()


def extract_resume_text(filename: str, data: bytes) -> str:
    """Plain text of an uploaded resume (.pdf or text file), cleaned."""
    if filename.lower().endswith(".pdf"):
        raw = extract_text(data)
    else:
        raw = decode_text(data)
    return clean_text(raw)
