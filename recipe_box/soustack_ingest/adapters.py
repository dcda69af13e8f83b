"""Input adapters that turn recipe documents into plain text."""
from __future__ import annotations

import logging
import re
import stat
import subprocess
import tempfile
import zipfile
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

from bs4 import BeautifulSoup
from docx import Document
from striprtf.striprtf import rtf_to_text

from .config import resolve_min_pdf_chars, resolve_pdf_backends
from .errors import AdapterError, UnsafeArchiveError, UnsupportedFormatError

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = {".txt", ".text"}
MARKDOWN_EXTENSIONS = {".md", ".markdown"}
HTML_EXTENSIONS = {".html", ".htm"}
SUPPORTED_EXTENSIONS = (
    TEXT_EXTENSIONS
    | MARKDOWN_EXTENSIONS
    | HTML_EXTENSIONS
    | {".docx", ".pdf", ".rtf", ".rtfd", ".rtfd.zip"}
)


def supported_extensions_text() -> str:
    return ", ".join(sorted(SUPPORTED_EXTENSIONS))


MARKDOWN_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+(.*?)\s*#*\s*$")
HTML_BLOCK_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "pre", "blockquote", "dt", "dd", "td"]
HTML_DROPPED_TAGS = ["script", "style", "noscript", "head", "template"]

RTF_DESTINATION_RE = re.compile(
    r"\{\\(?:\*|fonttbl|colortbl|stylesheet|info|expandedcolortbl)[^{}]*(?:\{[^{}]*\}[^{}]*)*\}"
)
RTF_ESCAPED_NEWLINE_RE = re.compile(r"\\\r?\n")
RTF_CONTROL_NEWLINE_RE = re.compile(r"(\\[a-zA-Z]+-?\d*) ?\r?\n")
RTF_PARAGRAPH_RE = re.compile(r"\\(?:par|line)(?![a-zA-Z])-?\d* ?")
RTF_HEX_RE = re.compile(r"\\'([0-9a-fA-F]{2})")
RTF_UNICODE_RE = re.compile(r"\\u(-?\d+) ?\??")
RTF_CONTROL_WORD_RE = re.compile(r"\\[a-zA-Z]+-?\d* ?")
RTF_ESCAPED_SYMBOL_RE = re.compile(r"\\([{}\\])")
RTF_SYMBOL_PLACEHOLDERS = {"{": "\x00lbrace\x00", "}": "\x00rbrace\x00", "\\": "\x00bslash\x00"}

RTF_COMMAND_TIMEOUT = 60


@dataclass
class AdapterOutput:
    text: str
    source_path: str
    kind: str = "text"
    converter: str | None = None
    assets: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    pdf_meta: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data.pop("text")
        return data


@dataclass
class PdfAttempt:
    backend: str
    text: str = ""
    warnings: list[str] = field(default_factory=list)
    error: str | None = None
    repaired: bool = False

    @property
    def chars(self) -> int:
        return len(self.text)

    @property
    def has_text(self) -> bool:
        return bool(self.text.strip())


def _dedupe(sequence: Iterable[str]) -> list[str]:
    return [item for item in dict.fromkeys(sequence) if item]


def _is_xref_issue(message: str | None) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return "xref" in lowered or "cross" in lowered


def extract_pdf_text(
    path: str | Path,
    *,
    min_chars: int | None = None,
    prefer_backends: Iterable[str] | None = None,
) -> tuple[str, dict[str, Any]]:
    """Extract text from a PDF, trying each backend until one yields enough text.

    ``pikepdf+<backend>`` entries rewrite the file with pikepdf first, which
    recovers documents with damaged cross-reference tables. The longest text
    wins; an empty string is returned when no attempt reaches ``min_chars``.
    """

    pdf_path = Path(path)
    threshold = resolve_min_pdf_chars(min_chars)
    try:
        byte_size = pdf_path.stat().st_size
    except OSError:
        byte_size = 0

    attempts: list[PdfAttempt] = []
    needs_repair = False
    with tempfile.TemporaryDirectory(prefix="recipe_pdf_") as tmp_dir:
        repaired_path: Path | None = None
        repair_error: str | None = None
        for backend in resolve_pdf_backends(prefer_backends):
            attempt = PdfAttempt(backend=backend)
            attempts.append(attempt)
            target = pdf_path
            if backend.startswith("pikepdf+"):
                if repaired_path is None and repair_error is None:
                    try:
                        repaired_path = _repair_pdf_with_pikepdf(pdf_path, Path(tmp_dir))
                    except RuntimeError as exc:
                        repair_error = str(exc)
                        logger.debug("pikepdf repair failed for %s: %s", pdf_path, exc)
                if repaired_path is None:
                    attempt.error = repair_error or "pikepdf repair unavailable"
                    attempt.warnings.append(f"pikepdf repair failed: {attempt.error}")
                    continue
                target = repaired_path
                attempt.repaired = True
                attempt.warnings.append("pikepdf repair applied")

            try:
                attempt.text = _extract_with_backend(backend.split("+", 1)[-1], target, attempt.warnings)
            except RuntimeError as exc:
                attempt.error = str(exc)
                logger.debug("PDF backend %s failed for %s: %s", backend, pdf_path, exc)

            if not attempt.has_text:
                attempt.warnings.append("extracted text empty")
            elif attempt.chars < threshold:
                attempt.warnings.append(
                    f"extracted text shorter than min_chars ({attempt.chars} < {threshold})"
                )
            if _is_xref_issue(attempt.error) or any(_is_xref_issue(w) for w in attempt.warnings):
                needs_repair = True
            if attempt.chars >= threshold and attempt.has_text and not attempt.error and not needs_repair:
                break

    with_text = [attempt for attempt in attempts if attempt.has_text]
    best = max(with_text, key=lambda attempt: attempt.chars) if with_text else None
    if best is not None and best.chars >= threshold:
        return best.text, {
            "backend": best.backend,
            "bytes": byte_size,
            "chars": best.chars,
            "warnings": _dedupe(best.warnings),
            "repaired": best.repaired,
            "error": None,
        }

    warnings = _dedupe(
        f"{attempt.backend}: {warning}" for attempt in attempts for warning in attempt.warnings
    )
    last_error = next((attempt.error for attempt in reversed(attempts) if attempt.error), None)
    if best is not None:
        warnings.append(f"best text shorter than min_chars ({best.chars} < {threshold})")
    elif last_error is None:
        warnings.append("no backend produced text")
    return "", {
        "backend": "none",
        "bytes": byte_size,
        "chars": best.chars if best else 0,
        "warnings": warnings,
        "repaired": any(attempt.repaired for attempt in attempts),
        "error": last_error,
    }


def _extract_with_backend(backend: str, path: Path, warnings: list[str]) -> str:
    if backend == "pypdf":
        return _extract_with_pypdf(path, warnings)
    if backend == "pdfminer":
        return _extract_with_pdfminer(path)
    raise RuntimeError(f"unknown backend: {backend}")


def _extract_with_pypdf(path: Path, warnings: list[str]) -> str:
    try:
        from pypdf import PdfReader
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError("pypdf is not installed") from exc

    try:
        reader = PdfReader(str(path))
        pages = list(reader.pages)
    except Exception as exc:  # pragma: no cover - upstream errors vary
        raise RuntimeError(str(exc)) from exc

    page_texts: list[str] = []
    for page_number, page in enumerate(pages, start=1):
        try:
            page_texts.append(page.extract_text() or "")
        except Exception as exc:  # pragma: no cover - depends on document
            warnings.append(f"page {page_number}: {exc}")
    return "\n".join(page_texts)


def _extract_with_pdfminer(path: Path) -> str:
    try:
        from pdfminer.high_level import extract_text
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError("pdfminer.six is not installed") from exc

    try:
        return extract_text(str(path)) or ""
    except Exception as exc:  # pragma: no cover - upstream errors vary
        raise RuntimeError(str(exc)) from exc


def _repair_pdf_with_pikepdf(source: Path, temp_dir: Path) -> Path:
    try:
        from pikepdf import Pdf
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError("pikepdf is not installed") from exc

    repaired_path = temp_dir / "repaired.pdf"
    try:
        with Pdf.open(str(source)) as pdf:
            pdf.save(str(repaired_path))
    except Exception as exc:  # pragma: no cover - upstream errors vary
        raise RuntimeError(str(exc)) from exc
    return repaired_path


def markdown_to_text(text: str) -> str:
    lines = []
    for raw_line in text.splitlines():
        match = MARKDOWN_HEADING_RE.match(raw_line)
        lines.append(match.group(1) if match else raw_line)
    return "\n".join(lines)


def html_to_text(markup: str) -> str:
    """Flatten HTML into one line per block, list items as ``- `` bullets.

    Headings are followed by a blank line and lists are separated from
    surrounding paragraphs so that title detection sees the usual layout.
    """

    soup = BeautifulSoup(markup, "lxml")
    for tag in soup(HTML_DROPPED_TAGS):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")

    lines: list[str] = []
    previous: str | None = None
    for tag in soup.find_all(HTML_BLOCK_TAGS):
        if tag.find(HTML_BLOCK_TAGS) is not None:
            continue
        parts = [" ".join(part.split()) for part in tag.get_text(" ").split("\n")]
        parts = [part for part in parts if part]
        if not parts:
            continue
        kind = "list" if tag.name == "li" else tag.name
        if previous is not None and (kind != previous or kind[0] == "h" or kind == "p") and lines[-1]:
            lines.append("")
        if kind == "list":
            lines.extend(f"- {part}" for part in parts)
        else:
            lines.extend(parts)
        previous = kind

    if not lines:
        body = soup.body or soup
        return "\n".join(line.strip() for line in body.get_text("\n").splitlines())
    return "\n".join(lines)


def read_text(path: Path) -> AdapterOutput:
    return AdapterOutput(text=path.read_text(encoding="utf-8", errors="replace"), source_path=str(path))


def read_markdown(path: Path) -> AdapterOutput:
    text = path.read_text(encoding="utf-8", errors="replace")
    return AdapterOutput(text=markdown_to_text(text), source_path=str(path), converter="markdown")


def read_html(path: Path) -> AdapterOutput:
    text = path.read_text(encoding="utf-8", errors="replace")
    return AdapterOutput(text=html_to_text(text), source_path=str(path), converter="beautifulsoup")


def read_docx(path: Path) -> AdapterOutput:
    try:
        document = Document(str(path))
    except Exception as exc:  # pragma: no cover - dependency errors
        raise AdapterError(f"Failed to read DOCX {path}: {exc}") from exc
    text = "\n".join(paragraph.text for paragraph in document.paragraphs)
    return AdapterOutput(text=text, source_path=str(path), converter="python-docx")


def read_pdf(
    path: Path,
    *,
    min_chars: int | None = None,
    pdf_backends: Iterable[str] | None = None,
) -> AdapterOutput:
    text, meta = extract_pdf_text(path, min_chars=min_chars, prefer_backends=pdf_backends)
    warnings = [f"pdf: {warning}" for warning in meta["warnings"]]
    if not text.strip():
        logger.warning("No usable text extracted from %s (%s)", path, meta.get("error") or "too short")
    return AdapterOutput(
        text=text,
        source_path=str(path),
        converter=str(meta["backend"]),
        warnings=warnings,
        pdf_meta=meta,
    )


def strip_rtf(rtf: str) -> str:
    """Regex RTF stripper used when no external converter is available."""

    text = RTF_ESCAPED_SYMBOL_RE.sub(lambda match: RTF_SYMBOL_PLACEHOLDERS[match.group(1)], rtf)
    text = RTF_ESCAPED_NEWLINE_RE.sub(r"\\par ", text)
    text = RTF_DESTINATION_RE.sub("", text)
    text = RTF_CONTROL_NEWLINE_RE.sub(r"\1 ", text)
    text = re.sub(r"\r?\n", "", text)
    text = RTF_PARAGRAPH_RE.sub("\n", text)
    text = RTF_HEX_RE.sub(lambda match: bytes([int(match.group(1), 16)]).decode("cp1252", errors="ignore"), text)
    text = RTF_UNICODE_RE.sub(lambda match: chr(int(match.group(1)) % 0x10000), text)
    text = RTF_CONTROL_WORD_RE.sub("", text)
    text = text.replace("{", "").replace("}", "")
    for symbol, placeholder in RTF_SYMBOL_PLACEHOLDERS.items():
        text = text.replace(placeholder, symbol)
    text = "\n".join(line.strip() for line in text.split("\n"))
    return re.sub(r"\n{3,}", "\n\n", text).strip()


class ConverterUnavailable(RuntimeError):
    pass


def _run_converter(command: list[str]) -> str:
    try:
        completed = subprocess.run(
            command,
            check=True,
            capture_output=True,
            text=True,
            timeout=RTF_COMMAND_TIMEOUT,
        )
    except FileNotFoundError as exc:
        raise ConverterUnavailable(f"{command[0]} not found on PATH") from exc
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        raise RuntimeError(stderr or f"{command[0]} exited with code {exc.returncode}") from exc
    except subprocess.TimeoutExpired as exc:
        raise RuntimeError(f"{command[0]} timed out") from exc
    if not completed.stdout.strip():
        raise RuntimeError(f"{command[0]} produced no text")
    return completed.stdout


def convert_with_striprtf(path: Path) -> str:
    rtf = path.read_text(encoding="latin-1")
    try:
        text = rtf_to_text(rtf, errors="ignore")
    except Exception as exc:  # pragma: no cover - upstream errors vary
        raise RuntimeError(str(exc) or type(exc).__name__) from exc
    if not text.strip():
        raise RuntimeError("striprtf produced no text")
    return text.strip()


def convert_with_pandoc(path: Path) -> str:
    return _run_converter(["pandoc", "--from", "rtf", "--to", "plain", "--wrap=none", str(path)])


def convert_with_textutil(path: Path) -> str:
    return _run_converter(["textutil", "-convert", "txt", "-stdout", str(path)])


RtfConverter = Callable[[Path], str]

RTF_CONVERTERS: list[tuple[str, RtfConverter]] = [
    ("striprtf", convert_with_striprtf),
    ("pandoc", convert_with_pandoc),
    ("textutil", convert_with_textutil),
]


def convert_rtf_to_text(
    path: Path, converters: Iterable[tuple[str, RtfConverter]] | None = None
) -> tuple[str, str, list[str]]:
    """Return ``(text, converter name, warnings)``; the regex stripper always succeeds."""

    warnings: list[str] = []
    chain = RTF_CONVERTERS if converters is None else converters
    for name, converter in chain:
        try:
            return converter(path), name, warnings
        except ConverterUnavailable as exc:
            logger.debug("RTF converter %s unavailable: %s", name, exc)
        except RuntimeError as exc:
            logger.warning("RTF converter %s failed for %s: %s", name, path, exc)
            warnings.append(f"rtf: {name} failed: {exc}")
    rtf = path.read_text(encoding="latin-1")
    return strip_rtf(rtf), "regex", warnings


def read_rtf(path: Path) -> AdapterOutput:
    text, converter, warnings = convert_rtf_to_text(path)
    return AdapterOutput(text=text, source_path=str(path), converter=converter, warnings=warnings)


def _rtf_priority(path: Path) -> int:
    name = path.name.lower()
    if name in {"txt.rtf", "text.rtf"}:
        return 3
    if name.startswith("txt"):
        return 2
    return 1


def find_primary_rtf(root: Path) -> Path | None:
    candidates = [path for path in root.rglob("*") if path.is_file() and path.suffix.lower() == ".rtf"]
    if not candidates:
        return None
    return max(candidates, key=lambda path: (_rtf_priority(path), path.stat().st_size))


def read_rtfd_directory(path: Path) -> AdapterOutput:
    primary = find_primary_rtf(path)
    if primary is None:
        raise AdapterError(f"No .rtf files found in {path}")
    text, converter, warnings = convert_rtf_to_text(primary)
    return AdapterOutput(
        text=text,
        source_path=str(path),
        converter=converter,
        assets=[primary.relative_to(path).as_posix()],
        warnings=warnings,
    )


def check_archive_member(info: zipfile.ZipInfo) -> None:
    name = info.filename.replace("\\", "/")
    pure = PurePosixPath(name)
    if not name or pure.is_absolute() or re.match(r"^[A-Za-z]:", name):
        raise UnsafeArchiveError(f"Unsafe zip entry path: {info.filename}")
    if ".." in pure.parts:
        raise UnsafeArchiveError(f"Unsafe zip entry path: {info.filename}")
    if stat.S_ISLNK(info.external_attr >> 16):
        raise UnsafeArchiveError(f"Symlink entries are not allowed: {info.filename}")


def read_rtfd_zip(path: Path) -> AdapterOutput:
    try:
        archive = zipfile.ZipFile(path)
    except (zipfile.BadZipFile, OSError) as exc:
        raise AdapterError(f"Failed to open archive {path}: {exc}") from exc
    with archive, tempfile.TemporaryDirectory(prefix="recipe_rtfd_") as tmp_dir:
        members = archive.infolist()
        for info in members:
            check_archive_member(info)
        extract_root = Path(tmp_dir)
        archive.extractall(extract_root)
        primary = find_primary_rtf(extract_root)
        if primary is None:
            raise AdapterError(f"No .rtf files found in {path}")
        text, converter, warnings = convert_rtf_to_text(primary)
        asset = primary.relative_to(extract_root).as_posix()
    return AdapterOutput(
        text=text,
        source_path=str(path),
        converter=converter,
        assets=[asset],
        warnings=warnings,
    )


def load_input(
    path: str | Path,
    *,
    min_pdf_chars: int | None = None,
    pdf_backends: Iterable[str] | None = None,
) -> AdapterOutput:
    """Dispatch ``path`` to the adapter for its format."""

    input_path = Path(path)
    if not input_path.exists():
        raise AdapterError(f"Input not found: {input_path}")
    name = input_path.name.lower()
    suffix = input_path.suffix.lower()
    logger.debug("Loading %s", input_path)

    if suffix == ".zip" and ".rtfd" in name:
        return read_rtfd_zip(input_path)
    if suffix == ".rtfd":
        if input_path.is_dir():
            return read_rtfd_directory(input_path)
        return read_rtfd_zip(input_path)
    if input_path.is_dir():
        raise UnsupportedFormatError(
            f"Unsupported input directory: {input_path} (supported extensions: {supported_extensions_text()})"
        )
    if suffix in TEXT_EXTENSIONS:
        return read_text(input_path)
    if suffix in MARKDOWN_EXTENSIONS:
        return read_markdown(input_path)
    if suffix in HTML_EXTENSIONS:
        return read_html(input_path)
    if suffix == ".docx":
        return read_docx(input_path)
    if suffix == ".pdf":
        return read_pdf(input_path, min_chars=min_pdf_chars, pdf_backends=pdf_backends)
    if suffix == ".rtf":
        return read_rtf(input_path)
    raise UnsupportedFormatError(
        f"Unsupported input extension: {suffix or input_path.name} "
        f"(supported extensions: {supported_extensions_text()})"
    )
