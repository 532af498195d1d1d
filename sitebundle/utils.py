from pathlib import PurePosixPath

ZIP_CONTENT_TYPES = {"application/zip", "application/x-zip-compressed"}


def is_zip_upload(filename: str | None, content_type: str | None) -> bool:
    if content_type in ZIP_CONTENT_TYPES:
        return True
    return bool(filename) and PurePosixPath(filename).suffix.lower() == ".zip"
