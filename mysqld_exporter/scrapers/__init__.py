from ..registry import Registry
from .binlog import BinlogSize
from .custom_query import CustomQuery, CustomQueryHR, CustomQueryLR, CustomQueryMR
from .engine import EngineInnodbStatus, EngineRocksdbStatus, EngineTokudbStatus
from .global_status import GlobalStatus
from .global_variables import GlobalVariables
from .heartbeat import Heartbeat
from .info_schema import (
    AutoIncrementColumns,
    ClientStats,
    InnodbCmp,
    InnodbCmpMem,
    InnodbMetrics,
    InnodbTablespaces,
    InnodbTrx,
    Processlist,
    SchemaStats,
    Tables,
    TableStats,
    UserStats,
)
from .mysql_user import User
from .perf_schema import (
    EventsStatements,
    EventsWaits,
    FileEvents,
    FileInstances,
    IndexIOWaits,
    MemoryEvents,
    ReplicationApplierStatusByWorker,
    ReplicationGroupMembers,
    ReplicationGroupMemberStats,
    TableIOWaits,
    TableLockWaits,
)
from .query_response_time import QueryResponseTime
from .slave_hosts import SlaveHosts
from .slave_status import SlaveStatus

ALL_SCRAPERS = (
    GlobalStatus,
    GlobalVariables,
    SlaveStatus,
    SlaveHosts,
    Processlist,
    Tables,
    InnodbTablespaces,
    InnodbMetrics,
    AutoIncrementColumns,
    InnodbCmp,
    InnodbCmpMem,
    InnodbTrx,
    QueryResponseTime,
    UserStats,
    ClientStats,
    TableStats,
    SchemaStats,
    EventsStatements,
    EventsWaits,
    FileEvents,
    FileInstances,
    TableIOWaits,
    IndexIOWaits,
    TableLockWaits,
    MemoryEvents,
    ReplicationGroupMembers,
    ReplicationGroupMemberStats,
    ReplicationApplierStatusByWorker,
    User,
    BinlogSize,
    Heartbeat,
    EngineInnodbStatus,
    EngineTokudbStatus,
    EngineRocksdbStatus,
    CustomQuery,
    CustomQueryHR,
    CustomQueryMR,
    CustomQueryLR,
)


def default_registry():
    return Registry(ALL_SCRAPERS)
