"""Document payload helpers.

Uploaded scans are kept as base64 data URLs so the original can be stored
next to the ledger rows and previewed later. Image-only vision APIs cannot
read PDFs, so the first page is rendered to JPEG with PyMuPDF first.
"""

import base64
import logging

import fitz  # PyMuPDF

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
JPEG_MIME_TYPE = "image/jpeg"


class DocumentConversionError(ValueError):
    """Raised when a document cannot be converted to an image."""


def encode_data_url(content: bytes, mime_type: str) -> str:
    """Encode raw bytes as a ``data:<mime>;base64,...`` URL.

    Args:
        content: Raw document bytes
        mime_type: MIME type of the document

    Returns:
        Data URL string
    """
    mime = mime_type or "application/octet-stream"
    return f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"


def render_first_page(pdf_bytes: bytes, scale: float = 2.5) -> bytes:
    """Render the first page of a PDF to JPEG bytes.

    Args:
        pdf_bytes: Raw PDF document
        scale: Zoom factor (1.0 = 72 dpi)

    Returns:
        JPEG image bytes

    Raises:
        DocumentConversionError: If the PDF is empty, corrupt or cannot be rendered
    """
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            if doc.page_count == 0:
                raise DocumentConversionError("PDF has no pages")
            pix = doc[0].get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            return pix.tobytes("jpeg")
    except DocumentConversionError:
        raise
    except Exception as e:
        logger.warning(f"PDF rendering failed: {e}")
        raise DocumentConversionError(
            "PDF conversion to image failed, the file may be damaged or unsupported"
        ) from e


def prepare_image_payload(document: bytes, mime_type: str, scale: float) -> tuple[bytes, str]:
    """Return an image payload suitable for image-only vision APIs.

    PDFs are rendered to JPEG; other payloads pass through unchanged.

    Raises:
        DocumentConversionError: If a PDF cannot be rendered
    """
    if mime_type == PDF_MIME_TYPE:
        return render_first_page(document, scale), JPEG_MIME_TYPE
    return document, mime_type
