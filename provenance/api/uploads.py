import shutil
import tempfile
from pathlib import Path

from fastapi import UploadFile

_MAX_SUFFIX_LENGTH = 16


def save_upload(upload: UploadFile, upload_dir: str) -> Path:
    """Copy an uploaded file to a scratch path the worker can read later.

    The caller owns the returned file and must delete it once the job using
    it reaches a terminal state.
    """
    directory = Path(upload_dir)
    directory.mkdir(parents=True, exist_ok=True)
    suffix = Path(upload.filename or "").suffix
    if len(suffix) > _MAX_SUFFIX_LENGTH or not suffix[1:].isalnum():
        suffix = ""
    with tempfile.NamedTemporaryFile(
        dir=directory, prefix="upload-", suffix=suffix, delete=False
    ) as scratch:
        shutil.copyfileobj(upload.file, scratch)
    return Path(scratch.name)
