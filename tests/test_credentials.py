"""
Tests for identity registration, lookup and sign-in.
"""

import io
import threading
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from starlette.datastructures import Headers, UploadFile

from food_ordering.core.errors import DuplicateIdentity, InvalidCredentials, ValidationError
from food_ordering.models import Identity
from food_ordering.services import credentials
from food_ordering.services.credentials import CredentialStore
from food_ordering.services.storage import UploadStorage


def make_upload(filename="avatar.png", content_type="image/png", content=b"\x89PNG fake image"):
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


async def identity_count(db) -> int:
    return (await db.execute(select(func.count(Identity.id)))).scalar()


@pytest.fixture
def storage(tmp_path):
    return UploadStorage(str(tmp_path / "uploads"), max_bytes=1024)


@pytest.fixture
def store(db, storage):
    return CredentialStore(db, storage=storage)


@pytest.mark.anyio
async def test_register_hashes_secret(store):
    identity = await store.register("Ann", secret="pw1", email="a@x.com")

    assert identity.id is not None
    assert identity.password_hash != "pw1"
    assert "pw1" not in identity.password_hash
    assert await store.verify_secret(identity, "pw1")
    assert not await store.verify_secret(identity, "pw2")


@pytest.mark.anyio
async def test_register_normalizes_email_case(store):
    identity = await store.register("Ann", secret="pw1", email="  A@X.com ")
    assert identity.email == "a@x.com"


@pytest.mark.anyio
@pytest.mark.parametrize("second", [
    {"email": "a@x.com"},
    {"mobile": "5550001"},
    {"email": "other@x.com", "mobile": "5550001"},
])
async def test_duplicate_identifier_rejected(db, store, second):
    await store.register("Ann", secret="pw1", email="a@x.com", mobile="5550001")

    with pytest.raises(DuplicateIdentity):
        await store.register("Bob", secret="pw2", **second)

    assert await identity_count(db) == 1


@pytest.mark.anyio
async def test_identifier_required(db, store):
    with pytest.raises(ValidationError):
        await store.register("Ann", secret="pw1")
    assert await identity_count(db) == 0


@pytest.mark.anyio
@pytest.mark.parametrize("name,secret", [("", "pw1"), ("Ann", ""), ("   ", "pw1")])
async def test_name_and_secret_required(store, name, secret):
    with pytest.raises(ValidationError):
        await store.register(name, secret=secret, email="a@x.com")


@pytest.mark.anyio
async def test_find_by_mobile_or_email(store):
    identity = await store.register("Ann", secret="pw1", email="a@x.com", mobile="5550001")

    assert (await store.find_by_sign_in_key("a@x.com")).id == identity.id
    assert (await store.find_by_sign_in_key("5550001")).id == identity.id
    assert await store.find_by_sign_in_key("nobody@x.com") is None
    assert await store.find_by_sign_in_key("") is None


@pytest.mark.anyio
async def test_mobile_only_identity(store):
    identity = await store.register("Cal", secret="pw1", mobile="5550002")
    assert identity.email is None
    assert (await store.authenticate("5550002", "pw1")).id == identity.id


@pytest.mark.anyio
async def test_authenticate_wrong_secret(store):
    await store.register("Ann", secret="pw1", email="a@x.com")
    with pytest.raises(InvalidCredentials):
        await store.authenticate("a@x.com", "wrong")


@pytest.mark.anyio
async def test_authenticate_unknown_identifier(store):
    with pytest.raises(InvalidCredentials):
        await store.authenticate("ghost@x.com", "pw1")


@pytest.mark.anyio
async def test_admin_pool_separation(store):
    await store.register("Ann", secret="pw1", email="a@x.com")
    await store.register("Root", secret="pw2", email="root@x.com", is_admin=True)

    with pytest.raises(InvalidCredentials):
        await store.authenticate("a@x.com", "pw1", admin=True)

    admin = await store.authenticate("root@x.com", "pw2", admin=True)
    assert admin.is_admin


@pytest.mark.anyio
async def test_profile_image_stored(store, storage):
    identity = await store.register("Ann", secret="pw1", email="a@x.com", profile_image=make_upload())

    assert identity.profile_image is not None
    assert identity.profile_image.endswith(".png")
    assert len(list(storage.directory.iterdir())) == 1


@pytest.mark.anyio
async def test_bad_image_creates_nothing(db, store, storage):
    with pytest.raises(ValidationError):
        await store.register(
            "Ann", secret="pw1", email="a@x.com",
            profile_image=make_upload("notes.txt", "text/plain"),
        )

    assert await identity_count(db) == 0
    assert not storage.directory.exists() or not list(storage.directory.iterdir())


@pytest.mark.anyio
async def test_lost_race_discards_image(db, store, storage):
    """A unique-constraint failure after the pre-check removes the stored image."""
    await store.register("Ann", secret="pw1", email="a@x.com")

    async def not_taken(*args):
        return False

    with patch.object(store, "_identifier_taken", not_taken):
        with pytest.raises(DuplicateIdentity):
            await store.register("Imposter", secret="pw2", email="a@x.com", profile_image=make_upload())

    assert await identity_count(db) == 1
    assert list(storage.directory.iterdir()) == []


@pytest.mark.anyio
async def test_argon2_runs_off_the_event_loop(store):
    loop_thread = threading.get_ident()
    hash_threads, verify_threads = [], []
    real_hash, real_verify = credentials.pwd.hash, credentials.pwd.verify

    def recording_hash(secret):
        hash_threads.append(threading.get_ident())
        return real_hash(secret)

    def recording_verify(secret, secret_hash):
        verify_threads.append(threading.get_ident())
        return real_verify(secret, secret_hash)

    with patch.object(credentials.pwd, "hash", side_effect=recording_hash), \
            patch.object(credentials.pwd, "verify", side_effect=recording_verify):
        await store.register("Ann", secret="pw1", email="a@x.com")
        await store.authenticate("a@x.com", "pw1")
        with pytest.raises(InvalidCredentials):
            await store.authenticate("ghost@x.com", "pw1")

    assert len(hash_threads) == 1
    assert len(verify_threads) == 2
    assert loop_thread not in hash_threads + verify_threads
