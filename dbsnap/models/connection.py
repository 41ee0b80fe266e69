"""Pydantic schema for a source or target database connection."""
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.engine import URL, make_url

from dbsnap.core.dialects import registry
from dbsnap.core.errors import ConfigurationError


class DatabaseConfig(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    type: Optional[str] = Field(None, description="Database type, e.g. postgresql, mysql, sqlite")

    # Server databases
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    ssl: bool = False
    schema_name: Optional[str] = Field(None, description="Schema to reflect (server databases)")

    # Embedded databases
    file: Optional[str] = Field(None, description="Path to the database file (embedded only)")
    mode: Literal["file", "memory"] = "file"

    # Explicit SQLAlchemy URL, overrides everything above
    url: Optional[str] = None

    @property
    def is_embedded(self) -> bool:
        if self.url:
            return make_url(self.url).get_backend_name() == "sqlite"
        return registry.is_registered(self.type) and registry.resolve(self.type).embedded

    @property
    def effective_port(self) -> Optional[int]:
        if self.port is not None:
            return self.port
        return registry.resolve(self.type).default_port

    def get_sqlalchemy_url(self) -> str:
        if self.url:
            return self.url
        spec = registry.resolve(self.type)
        if spec.embedded:
            if self.mode == "memory":
                return f"{spec.drivername}://"
            if not self.file:
                raise ConfigurationError(f"A file path is required for {spec.name} databases")
            return f"{spec.drivername}:///{self.file}"
        query = {"sslmode": "require"} if self.ssl and spec.name == "postgresql" else {}
        url = URL.create(
            drivername=spec.drivername,
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.effective_port,
            database=self.database,
            query=query,
        )
        return url.render_as_string(hide_password=False)

    def describe(self) -> str:
        """Human-readable location with the password masked."""
        return make_url(self.get_sqlalchemy_url()).render_as_string(hide_password=True)
