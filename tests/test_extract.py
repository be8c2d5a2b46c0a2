import pytest

from tubequeue.extract import extract_video_id


@pytest.mark.parametrize("text", [
    "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    "https://m.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
    "https://music.youtube.com/watch?v=dQw4w9WgXcQ&list=RD",
    "https://youtu.be/dQw4w9WgXcQ?si=abcdef",
    "https://www.youtube.com/shorts/dQw4w9WgXcQ",
    "https://youtube.com/live/dQw4w9WgXcQ?feature=share",
    "https://www.youtube.com/embed/dQw4w9WgXcQ",
    "https://www.youtube.com/v/dQw4w9WgXcQ",
    "please grab this one https://youtu.be/dQw4w9WgXcQ thanks",
    "dQw4w9WgXcQ",
    "  id: dQw4w9WgXcQ  ",
])
def test_extracts_id(text):
    assert extract_video_id(text) == "dQw4w9WgXcQ"


@pytest.mark.parametrize("text", [
    "",
    None,
    "hello",
    "https://www.youtube.com/watch?v=short",
    "https://example.com/",
])
def test_no_id(text):
    assert extract_video_id(text) is None


def test_ids_may_contain_dash_and_underscore():
    assert extract_video_id("https://youtu.be/a-b_c-d_e-f") == "a-b_c-d_e-f"


def test_bare_id_must_not_be_glued_to_other_id_characters():
    assert extract_video_id("foo-dQw4w9WgXcQ") is None
    assert extract_video_id("see (dQw4w9WgXcQ)") == "dQw4w9WgXcQ"
