import pytest

from conftest import fetch_all, seed
from logistics_hub.common.db_tables import delivery_proofs, profiles
from logistics_hub.proofs.service import list_proofs, object_name, submit_proof
from logistics_hub.proofs.storage import BUCKET, LocalObjectStorage, ObjectExistsError


@pytest.fixture
def storage(tmp_path):
    return LocalObjectStorage(tmp_path / "objects", "https://cdn.example.test/storage/")


def test_object_name_uses_tracking_id_and_extension():
    assert object_name("TRK-1", "Photo.JPG", 1700000000123) == "TRK-1-1700000000123.jpg"
    assert object_name("TRK-1", "", 5) == "TRK-1-5.bin"


def test_storage_refuses_to_overwrite(storage):
    storage.upload(BUCKET, "TRK-1-1.jpg", b"first")

    with pytest.raises(ObjectExistsError):
        storage.upload(BUCKET, "TRK-1-1.jpg", b"second")
    assert (storage.root / BUCKET / "TRK-1-1.jpg").read_bytes() == b"first"


def test_storage_rejects_path_like_names(storage):
    with pytest.raises(ValueError):
        storage.upload(BUCKET, "../escape.jpg", b"x")


def test_public_url_is_quoted(storage):
    assert storage.public_url(BUCKET, "TRK 1.jpg") == "https://cdn.example.test/storage/delivery-proofs/TRK%201.jpg"


@pytest.mark.asyncio
async def test_submit_proof_stores_object_and_row(database_url, storage):
    proof = await submit_proof(
        database_url,
        storage,
        tracking_id=" TRK-500 ",
        filename="door.png",
        data=b"\x89PNG fake",
        user_id="user-1",
        notes="  left with guard ",
        clock=lambda: 1_700_000_000.5,
    )

    assert proof["tracking_id"] == "TRK-500"
    assert proof["storage_path"] == "delivery-proofs/TRK-500-1700000000500.png"
    assert proof["image_url"].endswith("/delivery-proofs/TRK-500-1700000000500.png")
    assert proof["notes"] == "left with guard"
    assert proof["status"] == "submitted"
    assert (storage.root / BUCKET / "TRK-500-1700000000500.png").read_bytes() == b"\x89PNG fake"


@pytest.mark.asyncio
async def test_submit_proof_requires_tracking_id_and_image(database_url, storage):
    with pytest.raises(ValueError):
        await submit_proof(database_url, storage, tracking_id="  ", filename="a.jpg", data=b"x", user_id=None)
    with pytest.raises(ValueError):
        await submit_proof(database_url, storage, tracking_id="TRK-1", filename="a.jpg", data=b"", user_id=None)
    assert not (storage.root / BUCKET).exists()


@pytest.mark.asyncio
async def test_failed_row_insert_removes_object(tmp_path, storage):
    missing_tables_url = f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}"

    with pytest.raises(Exception):
        await submit_proof(
            missing_tables_url,
            storage,
            tracking_id="TRK-600",
            filename="a.jpg",
            data=b"img",
            user_id=None,
            clock=lambda: 1.0,
        )
    assert list((storage.root / BUCKET).iterdir()) == []


@pytest.mark.asyncio
async def test_list_proofs_search_matches_tracking_id_or_email(database_url):
    seed(database_url, profiles, [{"id": "user-1", "email": "Driver.One@fleet.example"}])
    seed(
        database_url,
        delivery_proofs,
        [
            {"tracking_id": "TRK-700", "image_url": "u1", "storage_path": "p1", "user_id": "user-1"},
            {"tracking_id": "TRK-701", "image_url": "u2", "storage_path": "p2", "user_id": None},
        ],
    )

    assert len(await list_proofs(database_url)) == 2
    by_email = await list_proofs(database_url, search="driver.one")
    assert [row["tracking_id"] for row in by_email] == ["TRK-700"]
    assert by_email[0]["user_email"] == "Driver.One@fleet.example"
    by_tracking = await list_proofs(database_url, search="trk-701")
    assert [row["tracking_id"] for row in by_tracking] == ["TRK-701"]
    assert len(fetch_all(database_url, delivery_proofs)) == 2
