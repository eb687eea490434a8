import hashlib
from pathlib import Path

from pdfrag.infrastructure.document_loader import SUPPORTED_EXTENSIONS


def compute_file_hash(file_path: str) -> str:
    """
    Compute SHA-256 hash of a file's contents.
    Used as the stable document id, so a renamed copy of the same export
    is still recognised as the same document.
    """
    sha256 = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


def compute_directory_hashes(directory_path: str) -> dict[str, str]:
    """
    Compute SHA-256 hashes for all supported page exports in a directory.
    Returns: { filename: hash_string }
    """
    data_dir = Path(directory_path)

    return {
        file_path.name: compute_file_hash(str(file_path))
        for file_path in sorted(data_dir.rglob("*"))
        if file_path.is_file() and file_path.suffix.lower() in SUPPORTED_EXTENSIONS
    }
