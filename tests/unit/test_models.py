import pytest

from balloon_pipeline.common.models import ABANDONED, PENDING, Coordinate, DownloadTask, PlaceLabel


@pytest.mark.parametrize(
    ("lat", "lon", "expected"),
    [
        (12.345, 0, "12.34,0.00"),
        (12.344999, 0, "12.34,0.00"),
        (12.355, 0, "12.36,0.00"),
        (-62.934, 75.716, "-62.93,75.72"),
        (-0.001, 0.004, "0.00,0.00"),
    ],
)
def test_coordinate_key_rounds_to_two_decimals(lat, lon, expected):
    assert Coordinate(lat, lon).key == expected


def test_coordinates_with_same_rounded_pair_share_a_key():
    assert Coordinate(12.345, 0).key == Coordinate(12.344999, 0).key
    assert Coordinate(12.345, 0).key != Coordinate(12.355, 0).key


def test_coordinate_from_triple_and_key():
    coordinate = Coordinate.from_triple([10.0, 20.0, 5])
    assert coordinate == Coordinate(10.0, 20.0)
    assert Coordinate.from_key("-62.93,75.72") == Coordinate(-62.93, 75.72)


def test_place_label_variants_serialise_to_single_key_mappings():
    assert PlaceLabel.country("Brazil").to_dict() == {"country": "Brazil"}
    assert PlaceLabel.water_body("Indian Ocean").to_dict() == {"ocean": "Indian Ocean"}
    assert PlaceLabel.water_body("Tasman Sea", category="sea").to_dict() == {"sea": "Tasman Sea"}
    assert PlaceLabel.unknown().to_dict() == {"unknown": "unknown"}


def test_place_label_from_dict_restores_variant():
    assert PlaceLabel.from_dict({"country": "Chad"}) == PlaceLabel.country("Chad")
    assert PlaceLabel.from_dict({"ocean": "Indian Ocean"}) == PlaceLabel.water_body("Indian Ocean")
    assert PlaceLabel.from_dict({"unknown": "unknown"}).is_unknown
    assert PlaceLabel.from_dict({}).is_unknown
    assert PlaceLabel.from_dict({"country": "a", "ocean": "b"}).is_unknown


def test_download_task_abandons_at_ceiling():
    task = DownloadTask(filename="03.json")
    for _ in range(4):
        task.record_failure("boom", max_attempts=5)
    assert task.state == PENDING
    task.record_failure("boom", max_attempts=5)
    assert task.state == ABANDONED
    assert task.attempts == 5
