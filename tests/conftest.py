from datetime import timedelta
from pathlib import Path
from typing import Callable, Optional
from uuid import uuid4

import pytest

from dal.image_dal import ImageDAL
from fakes import FakeObjectStore, FrozenClock
from models.image_record import ImageRecord
from services.image_lifecycle import ImageLifecycleEngine
from utils.database_init import AsyncDatabaseInitializer


@pytest.fixture
def db_dir(tmp_path: Path) -> Path:
    return tmp_path / "db"


@pytest.fixture
def db_initializer(db_dir: Path) -> AsyncDatabaseInitializer:
    return AsyncDatabaseInitializer(db_dir)


@pytest.fixture
def image_dal(db_initializer: AsyncDatabaseInitializer) -> ImageDAL:
    return ImageDAL(db_initializer)


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def engine(image_dal: ImageDAL, object_store: FakeObjectStore, clock: FrozenClock) -> ImageLifecycleEngine:
    return ImageLifecycleEngine(image_dal, object_store, clock=clock)


@pytest.fixture
def make_record(clock: FrozenClock) -> Callable[..., ImageRecord]:
    """Build a record whose expiry is `expires_in` relative to the test clock."""

    def _make_record(
        expires_in: timedelta = timedelta(hours=1),
        *,
        lifetime: timedelta = timedelta(hours=2),
        flagged: bool = False,
        image_id: Optional[str] = None,
        name: str = "cat.png",
    ) -> ImageRecord:
        image_id = image_id or str(uuid4())
        expires_at = clock.now + expires_in
        return ImageRecord(
            id=image_id,
            original_name=name,
            mime_type="image/png",
            path=f"images/{image_id}-{name}",
            expires_at=expires_at,
            created_at=expires_at - lifetime,
            url=f"https://objects.test/images/{image_id}-{name}?op=get",
            is_expired_flag=flagged,
        )

    return _make_record
