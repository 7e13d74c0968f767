"""Access to images uploaded ahead of an identification request.

Clients may upload a photo to the object store first and then send only its
relative path (`imagePath`). The path is resolved under the configured upload
root and read asynchronously.
"""

from __future__ import annotations

from pathlib import Path

import aiofiles


async def read_uploaded_image(upload_dir: str | Path, image_path: str) -> bytes:
    """Read an uploaded image referenced by a path relative to `upload_dir`.

    Args:
        upload_dir: Root directory holding uploaded objects.
        image_path: Client-supplied relative path of the stored image.

    Returns:
        The raw image bytes.

    Raises:
        ValueError: If the path escapes the upload root or is not a file.
        FileNotFoundError: If no object exists at the resolved path.
    """
    if not image_path or not image_path.strip():
        raise ValueError("imagePath must not be empty.")

    root = Path(upload_dir).expanduser().resolve()
    target = (root / image_path.strip().lstrip("/")).resolve()
    if target != root and root not in target.parents:
        raise ValueError("imagePath must stay within the upload directory.")
    if not target.exists():
        raise FileNotFoundError(f"No uploaded image at {image_path!r}.")
    if not target.is_file():
        raise ValueError("imagePath does not reference a file.")

    async with aiofiles.open(target, "rb") as f:
        return await f.read()
