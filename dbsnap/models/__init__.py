from dbsnap.models.connection import DatabaseConfig  # noqa: F401
from dbsnap.models.migration import (  # noqa: F401
    ConstraintSettings,
    DataSettings,
    MigrationConfiguration,
    MigrationSettings,
    OutputSettings,
)
from dbsnap.models.result import ErrorDetail, MigrationResult, TableReport  # noqa: F401
from dbsnap.models.schema import (  # noqa: F401
    ColumnDescriptor,
    ForeignKeyDescriptor,
    IndexDescriptor,
    TableDescriptor,
)
