from pathlib import Path

from sqlalchemy.pool import StaticPool
from sqlalchemy.sql.elements import ColumnElement

from shared.clients.meta import schema
from shared.clients.meta.MetaClientInterface import MetaClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class MetaClientSqlite(MetaClientInterface):
    """Single-file metadata store for local runs and tests.

    SQLite has no stemming full-text search here: the full-text predicate
    degrades to a case-insensitive substring match on the search projection.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._path = self.get_config_val("PATH", default="data/books.sqlite3", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Sqlite"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="PATH", val_type="string", default="data/books.sqlite3"),
        ]

    ################ CONNECTION ##################
    def _get_database_url(self) -> str:
        if self._path == ":memory:":
            return "sqlite+aiosqlite:///:memory:"
        return f"sqlite+aiosqlite:///{Path(self._path).expanduser().resolve()}"

    def _get_engine_options(self) -> dict:
        if self._path == ":memory:":
            # one shared connection, otherwise every checkout sees an empty database
            return {"poolclass": StaticPool}
        return {}

    ################ SEARCH ##################
    def _get_fulltext_condition(self, query: str) -> ColumnElement[bool]:
        return schema.books.c.search_projection.icontains(query, autoescape=True)

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        if self._path != ":memory:":
            Path(self._path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
        await super().boot()
