"""
Wiring: build a ready-to-load controller from a Config.

    controller, cache = connect(Config.load())
    await controller.load(cache=cache)

With remote=True (or when api_secret is set and remote is left as None)
the controller talks to a boardsync server; otherwise it opens the
SQLite file directly.
"""
import logging
from typing import Optional, Tuple

from .client import HttpGateway
from .config import Config
from .controller import BoardController
from .gateway import BoardGateway
from .snapshot import SnapshotCache
from .store import KanbanStore, SqliteGateway

logger = logging.getLogger(__name__)


def make_gateway(config: Config, remote: Optional[bool] = None) -> BoardGateway:
    if remote is None:
        remote = bool(config.api_secret)
    if remote:
        logger.info(f"Using remote board store at {config.api_url}")
        return HttpGateway(config.api_url, api_key=config.api_secret, timeout=config.request_timeout)
    logger.info(f"Using local board store {config.db_path}")
    store = KanbanStore(
        config.db_path,
        default_columns=config.default_columns,
        seed_demo=config.seed_demo,
        spacing=config.position_spacing,
    )
    return SqliteGateway(store)


def connect(config: Config, remote: Optional[bool] = None) -> Tuple[BoardController, Optional[SnapshotCache]]:
    """Controller for config.board_id, plus the snapshot cache if one is configured."""
    controller = BoardController(
        make_gateway(config, remote),
        config.board_id,
        spacing=config.position_spacing,
    )
    cache = None
    if config.snapshot_path:
        cache = SnapshotCache(config.snapshot_path)
        controller.subscribe(cache.schedule)
    return controller, cache
