"""Integrity-checked acquisition of remote archives and installers."""

from .archive import extract_archive
from .http import FetchResult, fetch, sha256_file, verify_file

__all__ = ["FetchResult", "extract_archive", "fetch", "sha256_file", "verify_file"]
