from datetime import datetime

import pytest

from sessions.naming import (
    CaptureIndex,
    folder_base_name,
    format_filename,
    is_media_file,
    is_numeric,
    is_video_file,
    parse_filename,
    sanitize,
    split_extension,
    timestamp_filename,
)


def test_format_single_sequence_is_zero_padded():
    assert format_filename(CaptureIndex(sequence=1)) == "001.jpg"
    assert format_filename(CaptureIndex(sequence=42)) == "042.jpg"


def test_format_sequence_wider_than_padding():
    assert format_filename(CaptureIndex(sequence=1234)) == "1234.jpg"


def test_format_numbered_group():
    assert format_filename(CaptureIndex(sequence=3, sub_sequence=2)) == "003-2.jpg"


def test_format_text_label_with_sub_and_video_extension():
    index = CaptureIndex(text_label="Beam", sub_sequence=4)
    assert format_filename(index, ".mp4") == "Beam-4.mp4"


def test_format_sanitizes_text_label():
    assert format_filename(CaptureIndex(text_label="A/B:C")) == "A_B_C.jpg"


def test_capture_index_needs_exactly_one_identity():
    with pytest.raises(ValueError):
        CaptureIndex()
    with pytest.raises(ValueError):
        CaptureIndex(sequence=1, text_label="x")


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("001.jpg", CaptureIndex(sequence=1)),
        ("012-3.jpg", CaptureIndex(sequence=12, sub_sequence=3)),
        ("Beam.jpg", CaptureIndex(text_label="Beam")),
        ("Beam-2.mp4", CaptureIndex(text_label="Beam", sub_sequence=2)),
        ("Wall-East.jpg", CaptureIndex(text_label="Wall-East")),
        ("Wall-East-3.jpg", CaptureIndex(text_label="Wall-East", sub_sequence=3)),
        ("-5.jpg", CaptureIndex(text_label="-5")),
    ],
)
def test_parse_filename(filename, expected):
    assert parse_filename(filename) == expected


def test_all_digit_label_reads_back_as_sequence():
    assert parse_filename("123.jpg") == CaptureIndex(sequence=123)


def test_collision_suffix_is_not_a_sub_sequence():
    assert parse_filename("003_2.jpg") == CaptureIndex(text_label="003_2")


def test_parse_is_inverse_of_format_for_sanitized_labels():
    for index in (
            CaptureIndex(sequence=7),
            CaptureIndex(sequence=7, sub_sequence=9),
            CaptureIndex(text_label="Column B2", sub_sequence=1),
    ):
        assert parse_filename(format_filename(index)) == index


def test_sanitize_replaces_illegal_characters():
    assert sanitize('a\\b/c:d*e?f"g<h>i|j') == "a_b_c_d_e_f_g_h_i_j"
    assert sanitize("plain name") == "plain name"


def test_is_numeric():
    assert is_numeric("007")
    assert not is_numeric("")
    assert not is_numeric("1a")
    assert not is_numeric("-1")


def test_media_and_video_detection_is_case_insensitive():
    assert is_media_file("X.JPG")
    assert is_media_file("clip.MOV")
    assert not is_media_file("notes.txt")
    assert is_video_file("clip.Mp4")
    assert not is_video_file("photo.png")


def test_split_extension_keeps_unknown_suffix_in_stem():
    assert split_extension("001-2.jpeg") == ("001-2", ".jpeg")
    assert split_extension("readme.txt") == ("readme.txt", "")


def test_timestamp_filename_for_photo_and_video():
    now = datetime(2026, 3, 4, 5, 6, 7)
    photo = timestamp_filename(".jpg", now)
    video = timestamp_filename(".mp4", now)

    assert photo.startswith("IMG_20260304_050607_")
    assert photo.endswith(".jpg")
    assert len(photo) == len("IMG_20260304_050607_ABCD.jpg")
    assert video.startswith("VID_20260304_050607_")
    assert video.endswith(".mp4")


def test_folder_base_name_strips_timestamp():
    assert folder_base_name("Site A_20260101_120000") == "Site A"
    assert folder_base_name("Plain") == "Plain"


def test_numeric_indices_round_trip_across_whole_range():
    for sequence in range(1, 1000):
        for sub_sequence in [None, *range(1, 100)]:
            index = CaptureIndex(sequence=sequence, sub_sequence=sub_sequence)
            assert parse_filename(format_filename(index)) == index


@pytest.mark.parametrize("label", ["Beam", "Wall-East", "Column B2", "Beam-3", "A_B", "x1", "Nord 2-a"])
@pytest.mark.parametrize("sub_sequence", [1, 2, 10, 99])
def test_text_labels_round_trip_with_sub_sequence(label, sub_sequence):
    index = CaptureIndex(text_label=label, sub_sequence=sub_sequence)
    assert parse_filename(format_filename(index, ".mp4")) == index


@pytest.mark.parametrize("label", ["Beam", "Wall-East", "Column B2", "x1"])
def test_text_labels_round_trip_without_sub_sequence(label):
    index = CaptureIndex(text_label=label)
    assert parse_filename(format_filename(index)) == index


def test_bare_label_ending_in_digits_reads_as_sub_sequence():
    assert parse_filename("Beam-3.jpg") == CaptureIndex(text_label="Beam", sub_sequence=3)
    assert parse_filename("Beam-3-1.jpg") == CaptureIndex(text_label="Beam-3", sub_sequence=1)
