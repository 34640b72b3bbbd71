"""
Low-level PDF object helpers on top of PyMuPDF's xref API.

PyMuPDF exposes objects as (type, value) pairs of PDF source text; these
helpers cover the handful of primitives the outline and link editors need:
indirect references, reference arrays, names and page lookups.
"""

import re

import fitz  # PyMuPDF

_REF = re.compile(r"(\d+)\s+(\d+)\s+R")


def ref(xref: int) -> str:
    """PDF source for an indirect reference."""
    return f"{xref} 0 R"


def parse_ref(value: str | None) -> int | None:
    if not value:
        return None
    match = _REF.fullmatch(value.strip())
    return int(match.group(1)) if match else None


def parse_ref_array(value: str | None) -> list[int]:
    if not value:
        return []
    return [int(m.group(1)) for m in _REF.finditer(value)]


def ref_array(xrefs: list[int]) -> str:
    return "[" + " ".join(ref(x) for x in xrefs) + "]"


def pdf_string(text: str) -> str:
    """Encode text as a PDF string literal (hex/UTF-16 when needed)."""
    return fitz.get_pdf_str(text)


def get_key(doc: fitz.Document, xref: int, key: str) -> tuple[str, str]:
    """
    Read a (possibly slash-separated) key from an object.

    Returns PyMuPDF's (type, value) pair; type is "null" when absent.
    """
    return doc.xref_get_key(xref, key)


def get_name(doc: fitz.Document, xref: int, key: str) -> str | None:
    kind, value = get_key(doc, xref, key)
    if kind != "name":
        return None
    return value.lstrip("/")


def get_text(doc: fitz.Document, xref: int, key: str) -> str | None:
    kind, value = get_key(doc, xref, key)
    if kind == "string":
        return value
    if kind == "name":
        return value.lstrip("/")
    return None


def get_ref(doc: fitz.Document, xref: int, key: str) -> int | None:
    kind, value = get_key(doc, xref, key)
    if kind != "xref":
        return None
    return parse_ref(value)


def get_array_refs(doc: fitz.Document, xref: int, key: str) -> list[int]:
    """Return the references held by an array value, direct or indirect."""
    kind, value = get_key(doc, xref, key)
    if kind == "array":
        return parse_ref_array(value)
    if kind == "xref":
        target = parse_ref(value)
        if target is None:
            return []
        return parse_ref_array(doc.xref_object(target, compressed=True))
    return []


def has_key(doc: fitz.Document, xref: int, key: str) -> bool:
    return get_key(doc, xref, key)[0] != "null"


def delete_key(doc: fitz.Document, xref: int, key: str) -> None:
    doc.xref_set_key(xref, key, "null")


def new_object(doc: fitz.Document, source: str | None = None) -> int:
    """Allocate a new object, optionally filling it right away."""
    xref = doc.get_new_xref()
    if source is not None:
        doc.update_object(xref, source)
    return xref


def page_number_map(doc: fitz.Document) -> dict[int, int]:
    """Map page object xref -> 1-based page number."""
    return {doc.page_xref(i): i + 1 for i in range(doc.page_count)}


def page_refs(doc: fitz.Document) -> list[int]:
    return [doc.page_xref(i) for i in range(doc.page_count)]


def get_annot_xrefs(doc: fitz.Document, page_xref: int) -> list[int]:
    return get_array_refs(doc, page_xref, "Annots")


def set_annot_xrefs(doc: fitz.Document, page_xref: int, xrefs: list[int]) -> None:
    """Rewrite a page's /Annots, dropping the key when empty."""
    kind, value = get_key(doc, page_xref, "Annots")
    if kind == "xref":
        target = parse_ref(value)
        if target is not None:
            doc.update_object(target, ref_array(xrefs))
            return
    if xrefs:
        doc.xref_set_key(page_xref, "Annots", ref_array(xrefs))
    else:
        delete_key(doc, page_xref, "Annots")


def resolve_page_target(
    doc: fitz.Document,
    xref: int,
    key: str,
    page_numbers: dict[int, int],
) -> tuple[int | None, str | None]:
    """
    Resolve a destination value to (page_number, named_destination).

    Handles explicit arrays whose first element is a page reference, and
    named destinations given as strings or names.
    """
    kind, value = get_key(doc, xref, key)
    if kind == "array":
        refs = parse_ref_array(value)
        if refs:
            return page_numbers.get(refs[0]), None
        return None, None
    if kind == "xref":
        target = parse_ref(value)
        if target is not None:
            refs = parse_ref_array(doc.xref_object(target, compressed=True))
            if refs:
                return page_numbers.get(refs[0]), None
        return None, None
    if kind in ("string", "name"):
        return None, value.lstrip("/") if kind == "name" else value
    return None, None


def locate_dict(doc: fitz.Document, xref: int, key: str) -> tuple[int, str] | None:
    """
    Find where a sub-dictionary lives.

    Returns (object_xref, key_prefix) so callers can read and write its
    entries with `f"{prefix}Name"` whether the dictionary is inline or
    indirect. None if the key does not hold a dictionary.
    """
    kind, value = get_key(doc, xref, key)
    if kind == "dict":
        return xref, f"{key}/"
    if kind == "xref":
        target = parse_ref(value)
        if target is not None and doc.xref_object(target, compressed=True).lstrip().startswith("<<"):
            return target, ""
    return None
