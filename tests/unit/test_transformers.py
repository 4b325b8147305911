"""
Unit tests for record validation and the ship transform
"""

import math
import pytest
from datetime import datetime
from schemas.fleetyards import FleetYardsShip, validate_ship_record, record_display_name
from ingestion.transformers.ship_transform import transform_ship


def _validated(record):
    ship, issues = validate_ship_record(record)
    assert issues is None, issues
    return ship


class TestValidateShipRecord:
    """Test the source record trust boundary"""

    def test_valid_record(self, ship_record):
        ship, issues = validate_ship_record(ship_record("Aurora MR"))

        assert issues is None
        assert isinstance(ship, FleetYardsShip)
        assert ship.name == "Aurora MR"
        assert ship.manufacturer.code == "RSI"
        assert ship.crew.max == 2

    def test_missing_required_fields(self, ship_record):
        record = ship_record("Aurora MR")
        del record["slug"]
        record["manufacturer"] = {"name": "RSI"}

        ship, issues = validate_ship_record(record)

        assert ship is None
        assert any(issue.startswith("slug:") for issue in issues)
        assert any(issue.startswith("manufacturer.code:") for issue in issues)

    def test_non_uuid_id_rejected(self, ship_record):
        ship, issues = validate_ship_record(ship_record("Aurora MR", id="not-a-uuid"))

        assert ship is None
        assert any("UUID" in issue for issue in issues)

    def test_empty_name_rejected(self, ship_record):
        ship, issues = validate_ship_record(ship_record("Aurora MR", name=""))

        assert ship is None
        assert any(issue.startswith("name:") for issue in issues)

    def test_nulls_become_defaults(self, ship_record):
        record = ship_record(
            "Aurora MR",
            classification=None,
            size=None,
            cargo=None,
            crew=None,
            updatedAt=None
        )

        ship = _validated(record)

        assert ship.classification == ""
        assert ship.size == ""
        assert ship.cargo == 0
        assert ship.crew.min == 0 and ship.crew.max == 0
        assert ship.updated_at == ""

    def test_media_fills_absent_views(self, ship_record):
        record = ship_record("Aurora MR")
        del record["angledView"]
        record["media"] = {
            "angledView": {"source": "https://cdn.example.com/media/angled.jpg"},
            "sideView": {"source": "https://cdn.example.com/media/side.jpg"},
        }

        ship = _validated(record)

        assert ship.angled_view.source == "https://cdn.example.com/media/angled.jpg"
        assert ship.side_view.source == "https://cdn.example.com/media/side.jpg"

    def test_flat_view_string(self, ship_record):
        ship = _validated(ship_record("Aurora MR", sideView="https://cdn.example.com/side.jpg"))

        assert ship.side_view.source == "https://cdn.example.com/side.jpg"
        assert ship.side_view.medium is None

    def test_store_image_as_view_object(self, ship_record):
        ship = _validated(ship_record("Aurora MR", storeImage={"medium": "https://cdn.example.com/s.jpg"}))

        assert ship.store_image == "https://cdn.example.com/s.jpg"

    def test_record_display_name(self):
        assert record_display_name({"name": "Aurora MR"}) == "Aurora MR"
        assert record_display_name({"name": ""}) == "unknown"
        assert record_display_name(["not", "a", "dict"]) == "unknown"


class TestTransformShip:
    """Test the canonical record mapping"""

    def test_maps_identity_and_manufacturer(self, ship_record):
        raw = _validated(ship_record("Aurora MR"))

        item = transform_ship(raw, sync_version=3)

        assert item.fleetyards_id == raw.id
        assert item.slug == "aurora-mr"
        assert item.manufacturer_code == "RSI"
        assert item.manufacturer_slug == "roberts-space-industries"
        assert item.sync_version == 3
        assert item.fleetyards_updated_at == "2024-01-15T10:00:00Z"
        assert item.crew_min == 1 and item.crew_max == 2
        assert item.scm_speed == 220
        assert item.pledge_price == 45

    def test_deterministic(self, ship_record):
        raw = _validated(ship_record("Aurora MR"))
        stamp = datetime(2024, 1, 15, 12, 0, 0)

        first = transform_ship(raw, 1, synced_at=stamp)
        second = transform_ship(raw, 1, synced_at=stamp)

        assert first == second
        assert first.synced_at == stamp and first.updated_at == stamp

    def test_unstamped_without_synced_at(self, ship_record):
        item = transform_ship(_validated(ship_record("Aurora MR")), 1)

        assert item.synced_at is None
        assert item.updated_at is None

    def test_missing_optional_fields_get_defaults(self, ship_record):
        record = ship_record("Aurora MR")
        for key in ("scmSpeed", "pledgePrice", "storeUrl", "storeImage", "angledView", "classification"):
            record.pop(key)

        item = transform_ship(_validated(record), 1)

        assert item.classification == ""
        assert item.scm_speed is None
        assert item.pledge_price is None
        assert item.store_url is None
        assert item.images.store is None
        assert item.images.angled_view is None

    def test_negative_and_non_finite_numbers(self, ship_record):
        record = ship_record("Aurora MR", cargo=-5, mass=math.inf, crew={"min": -1, "max": 3}, scmSpeed=-1)

        item = transform_ship(_validated(record), 1)

        assert item.cargo == 0
        assert item.mass == 0
        assert item.crew_min == 0
        assert item.crew_max == 3
        assert item.scm_speed is None

    def test_images_keep_resolutions_separate(self, ship_record):
        record = ship_record(
            "Aurora MR",
            sideView={"medium": "https://cdn.example.com/side-medium.jpg"},
            fleetchartImage="https://cdn.example.com/fleetchart.png"
        )

        images = transform_ship(_validated(record), 1).images.to_json()

        assert images["angledView"] == "https://cdn.example.com/aurora-mr/angled.jpg"
        assert images["angledViewMedium"] == "https://cdn.example.com/aurora-mr/angled-medium.jpg"
        assert images["sideView"] is None
        assert images["sideViewMedium"] == "https://cdn.example.com/side-medium.jpg"
        assert images["topView"] is None
        assert images["fleetchartImage"] == "https://cdn.example.com/fleetchart.png"
        assert images["store"] == "https://cdn.example.com/aurora-mr/store.jpg"

    def test_blank_image_urls_become_none(self, ship_record):
        record = ship_record(
            "Aurora MR",
            angledView={"source": "   ", "medium": " https://cdn.example.com/angled-medium.jpg "},
            storeImage="  "
        )

        images = transform_ship(_validated(record), 1).images.to_json()

        assert images["angledView"] is None
        assert images["angledViewMedium"] == "https://cdn.example.com/angled-medium.jpg"
        assert images["store"] is None

    def test_falls_back_to_last_updated_at(self, ship_record):
        record = ship_record("Aurora MR", updatedAt=None, lastUpdatedAt="2024-02-01T00:00:00Z")

        item = transform_ship(_validated(record), 1)

        assert item.fleetyards_updated_at == "2024-02-01T00:00:00Z"

    def test_rejects_version_zero(self, ship_record):
        raw = _validated(ship_record("Aurora MR"))

        with pytest.raises(ValueError):
            transform_ship(raw, 0)
