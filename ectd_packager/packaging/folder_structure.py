"""
eCTD folder paths and file names.

Structure node codes map to module 5 folders:
    "16"     -> m5/{study}/16
    "16.2.1" -> m5/{study}/16-2-1
"""

import re

from ectd_packager.packaging.types import FolderNode, PackageFile

MAX_FILE_NAME_LENGTH = 50
FALLBACK_FILE_NAME = "document"

_WHITESPACE = re.compile(r"\s+")
_INVALID_CHARS = re.compile(r"[^a-z0-9\-_]")
_REPEATED_HYPHENS = re.compile(r"-+")
_INVALID_EXTENSION_CHARS = re.compile(r"[^a-z0-9]")


def sanitize_path_component(component: str) -> str:
    """Lowercase, hyphenate whitespace, strip anything outside [a-z0-9-_]."""
    value = component.lower()
    value = _WHITESPACE.sub("-", value)
    value = _INVALID_CHARS.sub("", value)
    value = _REPEATED_HYPHENS.sub("-", value)
    return value.strip("-")


def code_to_folder_path(code: str, study_number: str) -> str:
    return f"m5/{sanitize_path_component(study_number)}/{code.replace('.', '-')}"


def sanitize_file_name(file_name: str) -> str:
    """
    Produce an eCTD-safe file name.

    The last extension is kept (lowercased, alphanumerics only); the base
    name is sanitized like a path component and capped at 50 characters
    without a trailing hyphen. An empty base becomes "document".
    """
    dot = file_name.rfind(".")
    if dot > 0:
        name = file_name[:dot]
        extension = _INVALID_EXTENSION_CHARS.sub("", file_name[dot + 1 :].lower())
    else:
        name = file_name
        extension = ""

    sanitized = sanitize_path_component(name)
    if not sanitized:
        sanitized = FALLBACK_FILE_NAME

    if len(sanitized) > MAX_FILE_NAME_LENGTH:
        sanitized = sanitized[:MAX_FILE_NAME_LENGTH].rstrip("-")

    if extension:
        return f"{sanitized}.{extension}"
    return sanitized


def get_target_path(code: str, study_number: str, file_name: str) -> str:
    return f"{code_to_folder_path(code, study_number)}/{sanitize_file_name(file_name)}"


def parse_target_path(target_path: str) -> dict[str, str]:
    """Split a target path into its folder and file name."""
    folder, sep, name = target_path.rpartition("/")
    if not sep:
        return {"folderPath": "", "fileName": target_path}
    return {"folderPath": folder, "fileName": name}


def build_folder_tree(files: list[PackageFile]) -> list[FolderNode]:
    """
    Build the folder hierarchy mirroring every file's target path.

    Folders and file names are sorted lexically at every level, so the
    result does not depend on input order.
    """
    folders: dict[str, FolderNode] = {}
    roots: list[FolderNode] = []

    for file in files:
        *parts, file_name = file.target_path.split("/")
        current = ""
        for part in parts:
            parent = current
            current = f"{current}/{part}" if current else part
            if current not in folders:
                folder = FolderNode(name=part, path=current)
                folders[current] = folder
                if parent:
                    folders[parent].children.append(folder)
                else:
                    roots.append(folder)
        if current:
            folders[current].files.append(file_name)

    def _sort(folder: FolderNode) -> None:
        folder.children.sort(key=lambda f: f.name)
        folder.files.sort()
        for child in folder.children:
            _sort(child)

    for root in roots:
        _sort(root)
    roots.sort(key=lambda f: f.name)
    return roots
