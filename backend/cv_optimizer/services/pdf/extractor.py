import io
from PyPDF2 import PdfReader


def extract_text_from_pdf(file_content: bytes) -> str:
    """Plain text of every page, joined by newlines.

    Image-only pages contribute an empty string, so a scanned document yields
    whitespace only. Raises ``PyPDF2.errors.PdfReadError`` for files that are
    not structurally valid PDFs.
    """
    reader = PdfReader(io.BytesIO(file_content))
    text_parts = []
    for page in reader.pages:
        text_parts.append(page.extract_text() or "")
    return "\n".join(text_parts)
