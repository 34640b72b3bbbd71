"""Small PDFs built with PyMuPDF for tests."""

import fitz  # PyMuPDF


def build_pdf_bytes(
    pages: int = 1,
    toc: list | None = None,
    links: list[tuple[int, dict]] | None = None,
    width: float = 612,
    height: float = 792,
) -> bytes:
    """
    Build a small PDF in memory.

    `toc` uses PyMuPDF's [level, title, page] rows; `links` are
    (page_index, link_dict) pairs passed to Page.insert_link.
    """
    doc = fitz.open()
    for i in range(pages):
        page = doc.new_page(width=width, height=height)
        page.insert_text((72, 72), f"Page {i + 1}")
    for page_index, link in links or []:
        doc[page_index].insert_link(link)
    if toc:
        doc.set_toc(toc)
    data = doc.tobytes()
    doc.close()
    return data
