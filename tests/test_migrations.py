from sqlalchemy import create_engine, inspect

from trap_oracle.scripts.migrate import run_upgrade_head


def test_upgrade_head_creates_oracle_tables(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"

    run_upgrade_head(url)

    engine = create_engine(url)
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert {"oracle_users", "code_submissions", "processed_requests", "listener_cursor"} <= tables
