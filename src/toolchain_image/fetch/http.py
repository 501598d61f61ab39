"""Integrity-enforced HTTP/file fetch implementation."""

from __future__ import annotations

import hashlib
import os
import time
from dataclasses import dataclass
from pathlib import Path
from urllib.error import HTTPError
from urllib.request import urlopen

from toolchain_image.errors import AcquisitionError, IntegrityError, ValidationError
from toolchain_image.models import SHA256_PATTERN
from toolchain_image.policy import Policy, ensure_network_allowed

CHUNK_SIZE = 1 << 16


@dataclass(frozen=True, slots=True)
class FetchResult:
    url: str
    path: Path
    sha256: str
    size: int
    verified: bool
    attempts: int


def fetch(
    url: str,
    *,
    destination: str | Path,
    sha256: str | None,
    policy: Policy | None = None,
    operation: str = "fetch",
) -> FetchResult:
    """Download ``url`` to ``destination``, failing closed when ``sha256`` does not match.

    The payload is streamed to a sibling ``.part`` file and only moved into
    place after the digest check passes, so a mismatch never leaves the
    destination behind. Transient transport failures are retried with
    exponential backoff; digest mismatches are not.
    """
    policy = policy or Policy()
    ensure_network_allowed(policy=policy, url=url, operation=operation)
    expected = sha256.strip().lower() if sha256 else None
    if expected is not None and not SHA256_PATTERN.fullmatch(expected):
        raise ValidationError(
            "Expected digest must be a 64-character hex SHA-256.",
            context={"operation": operation, "sha256": sha256 or ""},
        )

    target = Path(destination)
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_path = target.with_name(target.name + ".part")

    actual, size, attempts = _download_with_retry(
        url, temp_path=temp_path, policy=policy, operation=operation
    )
    if expected is not None and actual != expected:
        temp_path.unlink(missing_ok=True)
        raise IntegrityError(
            "Fetched content hash mismatch.",
            hint="Update the expected hash or source URL to a trusted immutable artifact.",
            context={"operation": operation, "url": url, "expected": expected, "actual": actual},
        )

    os.replace(temp_path, target)
    return FetchResult(
        url=url,
        path=target,
        sha256=actual,
        size=size,
        verified=expected is not None,
        attempts=attempts,
    )


def sha256_file(path: str | Path) -> str:
    hasher = hashlib.sha256()
    with Path(path).open("rb") as handle:
        while chunk := handle.read(CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.hexdigest()


def verify_file(path: str | Path, *, sha256: str) -> str:
    """Return the digest of ``path`` or raise if it differs from ``sha256``."""
    expected = sha256.strip().lower()
    if not SHA256_PATTERN.fullmatch(expected):
        raise ValidationError("Expected digest must be a 64-character hex string.")
    if not Path(path).is_file():
        raise ValidationError("File to verify does not exist.", context={"path": str(path)})
    actual = sha256_file(path)
    if actual != expected:
        raise IntegrityError(
            "File hash mismatch.",
            hint="Re-download the archive from a trusted source.",
            context={
                "operation": "verify",
                "path": str(path),
                "expected": expected,
                "actual": actual,
            },
        )
    return actual


def _download_with_retry(
    url: str,
    *,
    temp_path: Path,
    policy: Policy,
    operation: str,
) -> tuple[str, int, int]:
    last_error: OSError | None = None
    attempts = 0
    for attempt in range(1, policy.fetch_attempts + 1):
        attempts = attempt
        try:
            digest, size = _stream_to(url, temp_path=temp_path, timeout=policy.fetch_timeout)
        except OSError as exc:
            last_error = exc
            temp_path.unlink(missing_ok=True)
            # Client errors will not change on retry.
            if isinstance(exc, HTTPError) and 400 <= exc.code < 500:
                break
            if attempt < policy.fetch_attempts:
                time.sleep(policy.fetch_backoff * 2 ** (attempt - 1))
            continue
        return digest, size, attempt

    raise AcquisitionError(
        "Unable to fetch remote content.",
        hint="Check network access and that the URL is reachable.",
        context={
            "operation": operation,
            "url": url,
            "attempts": str(attempts),
            "error": str(last_error) if last_error is not None else "",
        },
    ) from last_error


def _stream_to(url: str, *, temp_path: Path, timeout: float) -> tuple[str, int]:
    hasher = hashlib.sha256()
    size = 0
    # Digest is verified by the caller.
    with urlopen(url, timeout=timeout) as response, temp_path.open("wb") as handle:  # noqa: S310
        while chunk := response.read(CHUNK_SIZE):
            hasher.update(chunk)
            handle.write(chunk)
            size += len(chunk)
    return hasher.hexdigest(), size
