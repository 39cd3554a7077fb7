"""URL and storage-key path helpers."""


def join_url(*parts: str) -> str:
    """
    Join URL or key segments with single slashes.

    Empty segments are skipped and the scheme of the first segment is kept:

        join_url("https://bucket.example.com/", "/uploads/", "a.jpg")
        -> "https://bucket.example.com/uploads/a.jpg"
    """
    cleaned = [str(part) for part in parts if part]
    if not cleaned:
        return ""
    if len(cleaned) == 1:
        return cleaned[0]

    head = cleaned[0].rstrip("/")
    tail = [part.strip("/") for part in cleaned[1:]]
    return "/".join([head] + [part for part in tail if part])
