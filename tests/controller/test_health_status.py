from controller.health import HealthCode, HealthLevel, HealthSource, HealthStatus


def test_ok_health_status():
    hs = HealthStatus.ok()
    assert hs.level == HealthLevel.OK
    assert hs.source is None
    assert hs.to_dict() == {"level": "OK"}


def test_error_health_status():
    instructions = ["Free up space"]
    hs = HealthStatus.error(
        code=HealthCode.ARCHIVE_FAILED,
        message="Could not archive 001.jpg",
        instructions=instructions,
        source=HealthSource.ARCHIVE,
    )
    instructions.append("changed later")

    data = hs.to_dict()
    assert data["level"] == "ERROR"
    assert data["code"] == "ARCHIVE_FAILED"
    assert data["source"] == "archive"
    assert data["instructions"] == ["Free up space"]
    assert "lastUpdated" in data
