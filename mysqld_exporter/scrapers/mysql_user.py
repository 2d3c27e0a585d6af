"""Account limits and privileges from mysql.user."""
from ..args import BOOL, ArgDef, Configurable
from ..decoders import parse_status, to_text, valid_name
from ..metrics import GAUGE, new_desc
from ..registry import Scraper

SUBSYSTEM = 'mysql'

PRIVILEGE_COLUMNS = (
    'Select_priv', 'Insert_priv', 'Update_priv', 'Delete_priv', 'Create_priv', 'Drop_priv', 'Reload_priv',
    'Shutdown_priv', 'Process_priv', 'File_priv', 'Grant_priv', 'References_priv', 'Index_priv', 'Alter_priv',
    'Show_db_priv', 'Super_priv', 'Create_tmp_table_priv', 'Lock_tables_priv', 'Execute_priv', 'Repl_slave_priv',
    'Repl_client_priv', 'Create_view_priv', 'Show_view_priv', 'Create_routine_priv', 'Alter_routine_priv',
    'Create_user_priv', 'Event_priv', 'Trigger_priv', 'Create_tablespace_priv',
)
LIMIT_COLUMNS = ('max_questions', 'max_updates', 'max_connections', 'max_user_connections')

USER_QUERY = "SELECT user, host, {columns} FROM mysql.user".format(
    columns=', '.join(PRIVILEGE_COLUMNS + LIMIT_COLUMNS),
)

LABELS = ['mysql_user', 'hostmask']
LIMITS = {column: new_desc(SUBSYSTEM, column, f"The number of {column} by user.", LABELS, GAUGE)
          for column in LIMIT_COLUMNS}


def parse_privilege(value):
    """'Y' -> 1.0, 'N' -> 0.0, anything else -> None."""
    return {'Y': 1.0, 'N': 0.0}.get(to_text(value))


class User(Configurable, Scraper):
    name = 'mysql.user'
    help = 'Collect data from mysql.user'
    min_version = 5.1
    arg_defs = (
        ArgDef('privileges', BOOL, False, 'Enable collecting user privileges from mysql.user'),
    )

    def scrape(self, ctx, db, sink):
        privileges = self.arg('privileges')
        for row in db.query(USER_QUERY).as_dicts():
            row = {name.lower(): value for name, value in row.items()}
            user, host = to_text(row.get('user')), to_text(row.get('host'))
            if privileges:
                for column in PRIVILEGE_COLUMNS:
                    value = parse_privilege(row.get(column.lower()))
                    if value is None:
                        continue
                    desc = new_desc(SUBSYSTEM, valid_name(column), f"{column} by user.", LABELS, GAUGE)
                    sink.emit(desc, value, user, host)
            for column, desc in LIMITS.items():
                sink.emit(desc, parse_status(row.get(column)) or 0.0, user, host)
