"""
File-signature based format detection for embedded binaries.
"""

import io
import zipfile
from typing import Optional

IMAGE_MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
    "webp": "image/webp",
    "emf": "image/x-emf",
    "wmf": "image/x-wmf",
    "svg": "image/svg+xml",
}

VIDEO_MIME_TYPES = {
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    "wmv": "video/x-ms-wmv",
    "webm": "video/webm",
}

AUDIO_MIME_TYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "aac": "audio/aac",
    "ogg": "audio/ogg",
    "m4a": "audio/mp4",
    "flac": "audio/flac",
    "wma": "audio/x-ms-wma",
}

DOCUMENT_MIME_TYPES = {
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "txt": "text/plain",
    "bin": "application/octet-stream",
}

OLE_COMPOUND_SIGNATURE = bytes.fromhex("D0CF11E0A1B11AE1")

# prog id prefix -> (OOXML format, legacy binary format)
PROG_ID_FORMATS = (
    ("word.", ("docx", "doc")),
    ("excel.", ("xlsx", "xls")),
    ("powerpoint.", ("pptx", "ppt")),
    ("acroexch.", ("pdf", "pdf")),
)


def detect_image_format(data: bytes, fallback: Optional[str] = None) -> str:
    head = data[:12]
    if head.startswith(b"\x89PNG"):
        return "png"
    if head.startswith(b"\xff\xd8\xff"):
        return "jpg"
    if head.startswith(b"GIF8"):
        return "gif"
    if head.startswith(b"BM"):
        return "bmp"
    if head.startswith(b"II*\x00") or head.startswith(b"MM\x00*"):
        return "tiff"
    if head.startswith(b"RIFF") and head[8:12] == b"WEBP":
        return "webp"
    if head.startswith(b"\x01\x00\x00\x00"):
        return "emf"
    if head.startswith(b"\xd7\xcd\xc6\x9a"):
        return "wmf"
    if head.lstrip().startswith(b"<svg") or head.lstrip().startswith(b"<?xml"):
        return "svg"
    return (fallback or "png").lower().lstrip(".")


def detect_video_format(data: bytes, fallback: Optional[str] = None) -> str:
    head = data[:12]
    if head[4:8] == b"ftyp":
        return "mov" if head[8:10] == b"qt" else "mp4"
    if head[4:8] in (b"moov", b"mdat"):
        return "mov"
    if head.startswith(b"RIFF") and head[8:12] == b"AVI ":
        return "avi"
    if head.startswith(bytes.fromhex("3026B275")):
        return "wmv"
    if head.startswith(bytes.fromhex("1A45DFA3")):
        return "webm"
    return (fallback or "mp4").lower().lstrip(".")


def detect_audio_format(data: bytes, fallback: Optional[str] = None) -> str:
    head = data[:12]
    if head.startswith(b"ID3") or head[:2] in (b"\xff\xfb", b"\xff\xf3", b"\xff\xf2"):
        return "mp3"
    if head.startswith(b"RIFF") and head[8:12] == b"WAVE":
        return "wav"
    if head[:2] in (b"\xff\xf1", b"\xff\xf9"):
        return "aac"
    if head.startswith(b"OggS"):
        return "ogg"
    if head[4:8] == b"ftyp" and head[8:11] == b"M4A":
        return "m4a"
    if head.startswith(b"fLaC"):
        return "flac"
    if head.startswith(bytes.fromhex("3026B275")):
        return "wma"
    return (fallback or "mp3").lower().lstrip(".")


def _format_from_prog_id(prog_id: Optional[str], legacy: bool) -> Optional[str]:
    if not prog_id:
        return None
    lowered = prog_id.lower()
    for prefix, (modern, old) in PROG_ID_FORMATS:
        if lowered.startswith(prefix):
            return old if legacy else modern
    return None


def _zip_document_format(data: bytes) -> Optional[str]:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = archive.namelist()
    except zipfile.BadZipFile:
        return None
    for folder, fmt in (("word/", "docx"), ("xl/", "xlsx"), ("ppt/", "pptx")):
        if any(name.startswith(folder) for name in names):
            return fmt
    return None


def _looks_like_text(data: bytes) -> bool:
    sample = data[:256]
    if not sample:
        return False
    control = sum(1 for byte in sample if byte < 32 and byte not in (9, 10, 13))
    return control / len(sample) < 0.1


def detect_document_format(data: bytes, prog_id: Optional[str] = None) -> str:
    """
    Format of an embedded document.

    The byte signature decides between PDF, OOXML package and legacy compound
    file; the OLE prog id refines compound files and unreadable packages.
    """
    if data.startswith(b"%PDF"):
        return "pdf"
    if data.startswith(b"PK\x03\x04"):
        return _zip_document_format(data) or _format_from_prog_id(prog_id, legacy=False) or "docx"
    if data.startswith(OLE_COMPOUND_SIGNATURE):
        return _format_from_prog_id(prog_id, legacy=True) or "bin"
    if _looks_like_text(data):
        return "txt"
    return _format_from_prog_id(prog_id, legacy=False) or "bin"


def mime_type_for(fmt: str) -> str:
    for table in (IMAGE_MIME_TYPES, VIDEO_MIME_TYPES, AUDIO_MIME_TYPES, DOCUMENT_MIME_TYPES):
        if fmt in table:
            return table[fmt]
    return "application/octet-stream"
