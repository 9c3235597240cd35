from cv_optimizer.services.pdf.extractor import extract_text_from_pdf
from cv_optimizer.services.pdf.renderer import PdfRenderer

__all__ = ["extract_text_from_pdf", "PdfRenderer"]
