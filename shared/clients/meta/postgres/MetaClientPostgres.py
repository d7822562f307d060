import re

from sqlalchemy.sql.elements import ColumnElement

from shared.clients.meta import schema
from shared.clients.meta.MetaClientInterface import MetaClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

_REGCONFIG_RE = re.compile(r"^[a-z_]+$")


class MetaClientPostgres(MetaClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._dsn = self.get_config_val("DSN", default=None, val_type="string")
        self._text_search_config = self.get_config_val("TEXT_SEARCH_CONFIG", default="french", val_type="string").lower()
        # rendered as a literal in DDL and queries
        if not _REGCONFIG_RE.match(self._text_search_config):
            raise ValueError(f"Invalid text search configuration '{self._text_search_config}' (META_POSTGRES_TEXT_SEARCH_CONFIG).")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Postgres"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="DSN", val_type="string", default=None),
            EnvConfig(env_key="TEXT_SEARCH_CONFIG", val_type="string", default="french"),
        ]

    ################ CONNECTION ##################
    def _get_database_url(self) -> str:
        # accept plain libpq-style DSNs
        for prefix in ("postgresql://", "postgres://"):
            if self._dsn.startswith(prefix):
                return "postgresql+asyncpg://" + self._dsn[len(prefix):]
        return self._dsn

    def _get_engine_options(self) -> dict:
        return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}

    def _get_extra_ddl(self) -> list[str]:
        return [
            "CREATE INDEX IF NOT EXISTS ix_books_search_projection_fts ON books "
            f"USING gin (to_tsvector('{self._text_search_config}', search_projection))",
        ]

    ################ SEARCH ##################
    def _get_fulltext_condition(self, query: str) -> ColumnElement[bool]:
        # to_tsvector(cfg, search_projection) @@ plainto_tsquery(cfg, query)
        return schema.books.c.search_projection.match(query, postgresql_regconfig=self._text_search_config)
