"""Application wiring: logging, media directories, database, and services"""

import logging
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from garden.config import Settings
from garden.core.media import MediaService, MediaType
from garden.core.service import GardenService
from garden.crud.database import init_db, make_engine
from garden.crud.sql_repo import sql_repos
from garden.errors import GardenError, InitializationError


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a root stderr handler at the given level."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)


@dataclass
class AppState:
    """Everything a command needs: the domain service, media storage, and settings."""
    service: GardenService
    media: MediaService
    engine: Engine
    settings: Settings

    def close(self) -> None:
        self.media.close()
        self.engine.dispose()


def create_media_dirs(media_root: Path) -> None:
    for media_type in MediaType:
        (media_root / media_type.subdir).mkdir(parents=True, exist_ok=True)


def initialize(settings: Settings) -> AppState:
    """Build AppState from settings. Raises InitializationError on any setup failure."""
    media_root = Path(settings.media_root)
    try:
        create_media_dirs(media_root)
    except OSError as e:
        raise InitializationError(f"cannot create media directory {media_root}: {e}") from e

    try:
        engine = make_engine(settings.db_url, echo=settings.echo_sql)
        init_db(engine)
    except (SQLAlchemyError, GardenError) as e:
        raise InitializationError(f"database setup failed for {settings.db_url}: {e}") from e

    service = GardenService(*sql_repos(engine))
    media = MediaService(media_root, max_download_bytes=settings.max_download_bytes)
    logger.info("garden initialized (db=%s, media=%s)", settings.db_url, media_root)
    return AppState(service=service, media=media, engine=engine, settings=settings)
