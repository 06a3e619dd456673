import re
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from fakes import BrokenMetadataStore, FakeObjectStore
from models.errors import MetadataStoreError, ObjectStoreError, ValidationError
from models.lifecycle_results import LookupStatus
from services.image_lifecycle import ImageLifecycleEngine


class TestInitiateUpload:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("minutes", [1, 60, 24 * 60])
    async def test_expiry_is_creation_plus_ttl(self, engine, image_dal, object_store, minutes: int) -> None:
        ticket = await engine.initiate_upload("cat.png", "image/png", timedelta(minutes=minutes))

        assert ticket.expires_at - ticket.created_at == timedelta(minutes=minutes)
        stored = await image_dal.get_by_id(ticket.id)
        assert stored is not None
        assert stored.expires_at - stored.created_at == timedelta(minutes=minutes)
        assert stored.size == 0
        assert stored.is_expired_flag is False
        assert stored.url == ticket.url
        assert object_store.presign_calls == [(stored.path, "image/png", minutes * 60)]

    @pytest.mark.asyncio
    async def test_ticket_echoes_metadata(self, engine) -> None:
        ticket = await engine.initiate_upload("holiday photo.jpg", "image/jpeg", timedelta(minutes=5))
        body = ticket.to_response()

        assert body["originalName"] == "holiday photo.jpg"
        assert body["mimeType"] == "image/jpeg"
        assert body["size"] == 0
        assert "op=put" in body["uploadUrl"]
        assert "op=get" in body["url"]

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, engine) -> None:
        first = await engine.initiate_upload("a.png", "image/png", timedelta(minutes=1))
        second = await engine.initiate_upload("a.png", "image/png", timedelta(minutes=1))
        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_path_hostile_name_is_sanitized(self, engine, image_dal) -> None:
        raw = "../../etc/passwd.png"
        ticket = await engine.initiate_upload(raw, "image/png", timedelta(minutes=1))
        stored = await image_dal.get_by_id(ticket.id)

        prefix = f"images/{ticket.id}-"
        assert stored.path.startswith(prefix)
        name_part = stored.path[len(prefix):]
        assert re.fullmatch(r"[A-Za-z0-9._-]+", name_part)
        assert name_part == ".._.._etc_passwd.png"
        assert name_part != raw
        assert stored.original_name == raw

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name, content_type, ttl",
        [
            ("", "image/png", timedelta(minutes=1)),
            ("   ", "image/png", timedelta(minutes=1)),
            ("cat.png", "", timedelta(minutes=1)),
            ("cat.png", "image/png", timedelta(0)),
            ("cat.png", "image/png", timedelta(minutes=-5)),
            ("cat.png", "image/png", 60),
        ],
    )
    async def test_invalid_input_never_reaches_stores(self, engine, image_dal, object_store, name, content_type, ttl) -> None:
        with pytest.raises(ValidationError):
            await engine.initiate_upload(name, content_type, ttl)

        assert object_store.presign_calls == []
        assert await image_dal.scan_all() == []

    @pytest.mark.asyncio
    async def test_presign_failure_leaves_no_record(self, engine, image_dal, object_store) -> None:
        object_store.fail_presign = True

        with pytest.raises(ObjectStoreError):
            await engine.initiate_upload("cat.png", "image/png", timedelta(minutes=1))

        assert await image_dal.scan_all() == []

    @pytest.mark.asyncio
    async def test_metadata_failure_propagates(self, clock) -> None:
        engine = ImageLifecycleEngine(BrokenMetadataStore(), FakeObjectStore(), clock=clock)

        with pytest.raises(MetadataStoreError):
            await engine.initiate_upload("cat.png", "image/png", timedelta(minutes=1))


class TestFetchContent:
    @pytest.mark.asyncio
    async def test_active_image_returns_bytes(self, engine, object_store) -> None:
        ticket = await engine.initiate_upload("cat.png", "image/png", timedelta(minutes=10))
        record = await engine.metadata_store.get_by_id(ticket.id)
        object_store.objects[record.path] = b"\x89PNG"

        result = await engine.fetch_content(ticket.id)

        assert result.status is LookupStatus.FOUND
        assert result.value.data == b"\x89PNG"
        assert result.value.mime_type == "image/png"
        assert object_store.delete_calls == []

    @pytest.mark.asyncio
    async def test_unknown_id_is_not_found(self, engine, object_store) -> None:
        result = await engine.fetch_content("does-not-exist")

        assert result.status is LookupStatus.NOT_FOUND
        assert object_store.fetch_calls == []

    @pytest.mark.asyncio
    async def test_expired_unflagged_image_is_flagged_and_purged(self, engine, image_dal, object_store, make_record) -> None:
        record = make_record(expires_in=timedelta(minutes=-1))
        await image_dal.put(record)
        object_store.objects[record.path] = b"bytes"

        result = await engine.fetch_content(record.id)

        assert result.status is LookupStatus.NOT_FOUND
        stored = await image_dal.get_by_id(record.id)
        assert stored is not None
        assert stored.is_expired_flag is True
        assert object_store.delete_calls == [record.path]
        assert record.path not in object_store.objects
        assert object_store.fetch_calls == []

    @pytest.mark.asyncio
    async def test_flagged_image_skips_flag_write_and_tolerates_absent_object(self, engine, image_dal, object_store, make_record) -> None:
        record = make_record(expires_in=timedelta(hours=1), flagged=True)
        await image_dal.put(record)
        image_dal.set_expired_flag = AsyncMock(wraps=image_dal.set_expired_flag)

        result = await engine.fetch_content(record.id)

        assert result.status is LookupStatus.NOT_FOUND
        image_dal.set_expired_flag.assert_not_awaited()
        assert object_store.presign_calls == []
        assert object_store.delete_calls == [record.path]

    @pytest.mark.asyncio
    async def test_missing_object_does_not_flag(self, engine, image_dal, object_store, make_record) -> None:
        record = make_record()
        await image_dal.put(record)

        result = await engine.fetch_content(record.id)

        assert result.status is LookupStatus.NOT_FOUND
        assert (await image_dal.get_by_id(record.id)).is_expired_flag is False
        assert object_store.delete_calls == []

    @pytest.mark.asyncio
    async def test_object_store_error_is_reported_as_failure(self, engine, image_dal, object_store, make_record) -> None:
        record = make_record()
        await image_dal.put(record)
        object_store.fail_fetch = True

        result = await engine.fetch_content(record.id)

        assert result.status is LookupStatus.FAILED
        assert isinstance(result.error, ObjectStoreError)
        assert (await image_dal.get_by_id(record.id)).is_expired_flag is False

    @pytest.mark.asyncio
    async def test_metadata_error_is_reported_as_failure(self, clock) -> None:
        engine = ImageLifecycleEngine(BrokenMetadataStore(), FakeObjectStore(), clock=clock)

        result = await engine.fetch_content("any")

        assert result.status is LookupStatus.FAILED
        assert not result.is_found


class TestFetchMetadata:
    @pytest.mark.asyncio
    async def test_active_image_projection_hides_path(self, engine, image_dal, make_record) -> None:
        record = make_record()
        await image_dal.put(record)

        result = await engine.fetch_metadata(record.id)

        assert result.status is LookupStatus.FOUND
        assert result.value["id"] == record.id
        assert result.value["originalName"] == "cat.png"
        assert "path" not in result.value

    @pytest.mark.asyncio
    async def test_expired_unflagged_image_is_not_found_and_not_mutated(self, engine, image_dal, object_store, make_record) -> None:
        record = make_record(expires_in=timedelta(seconds=-30))
        await image_dal.put(record)
        object_store.objects[record.path] = b"bytes"

        result = await engine.fetch_metadata(record.id)

        assert result.status is LookupStatus.NOT_FOUND
        assert (await image_dal.get_by_id(record.id)).is_expired_flag is False
        assert object_store.delete_calls == []
        assert record.path in object_store.objects

    @pytest.mark.asyncio
    async def test_flagged_image_is_not_found(self, engine, image_dal, make_record) -> None:
        record = make_record(flagged=True)
        await image_dal.put(record)

        assert (await engine.fetch_metadata(record.id)).status is LookupStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_store_error_is_reported_as_failure(self, clock) -> None:
        engine = ImageLifecycleEngine(BrokenMetadataStore(), FakeObjectStore(), clock=clock)

        result = await engine.fetch_metadata("any")

        assert result.status is LookupStatus.FAILED
        assert isinstance(result.error, MetadataStoreError)


class TestExpireAndPurge:
    @pytest.mark.asyncio
    async def test_twice_matches_once(self, engine, image_dal, object_store, make_record) -> None:
        record = make_record(expires_in=timedelta(minutes=-5))
        await image_dal.put(record)
        object_store.objects[record.path] = b"bytes"

        first = await engine.expire_and_purge(record)
        after_first = await image_dal.get_by_id(record.id)
        second = await engine.expire_and_purge(record)
        after_second = await image_dal.get_by_id(record.id)

        assert first.flag_set is True and first.object_deleted is True and first.ok
        assert second.flag_set is False and second.object_deleted is False and second.ok
        assert after_first == after_second
        assert after_second.is_expired_flag is True
        assert record.path not in object_store.objects

    @pytest.mark.asyncio
    async def test_delete_failure_keeps_flag_and_does_not_raise(self, engine, image_dal, object_store, make_record) -> None:
        record = make_record(expires_in=timedelta(minutes=-5))
        await image_dal.put(record)
        object_store.fail_delete_keys.add(record.path)

        outcome = await engine.expire_and_purge(record)

        assert outcome.flag_set is True
        assert outcome.object_deleted is None
        assert len(outcome.errors) == 1
        assert (await image_dal.get_by_id(record.id)).is_expired_flag is True

    @pytest.mark.asyncio
    async def test_flag_failure_still_attempts_delete(self, clock, make_record) -> None:
        object_store = FakeObjectStore()
        engine = ImageLifecycleEngine(BrokenMetadataStore(), object_store, clock=clock)
        record = make_record(expires_in=timedelta(minutes=-5))
        object_store.objects[record.path] = b"bytes"

        outcome = await engine.expire_and_purge(record)

        assert outcome.flag_set is False
        assert outcome.object_deleted is True
        assert object_store.delete_calls == [record.path]
        assert not outcome.ok

    @pytest.mark.asyncio
    async def test_metadata_row_is_kept(self, engine, image_dal, make_record) -> None:
        record = make_record(expires_in=timedelta(minutes=-5))
        await image_dal.put(record)

        await engine.expire_and_purge(record)

        assert await image_dal.get_by_id(record.id) is not None


@pytest.mark.asyncio
async def test_short_lived_upload_scenario(engine, image_dal, object_store, clock) -> None:
    ticket = await engine.initiate_upload("cat.png", "image/png", timedelta(minutes=1))
    record = await image_dal.get_by_id(ticket.id)
    object_store.objects[record.path] = b"uploaded"

    clock.advance(minutes=2)
    result = await engine.fetch_content(ticket.id)

    assert result.status is LookupStatus.NOT_FOUND
    flagged = await image_dal.scan_expired_or_flagged(clock.now)
    assert [r.id for r in flagged] == [ticket.id]
    assert flagged[0].is_expired_flag is True
    assert object_store.delete_calls == [record.path]


@pytest.mark.asyncio
async def test_purge_without_metadata_row_reports_no_flag(engine, object_store, make_record) -> None:
    record = make_record(expires_in=timedelta(minutes=-5))
    object_store.objects[record.path] = b"bytes"

    outcome = await engine.expire_and_purge(record)

    assert outcome.flag_set is False
    assert outcome.object_deleted is True
    assert outcome.ok
