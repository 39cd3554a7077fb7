import pytest


@pytest.fixture
def media_files(tmp_path):
    """Three files with distinct content, in selection order."""
    files = []
    for name, content in (("a.jpg", b"alpha"), ("b.png", b"bravo"), ("c.gif", b"charlie")):
        path = tmp_path / name
        path.write_bytes(content)
        files.append(path)
    return files
