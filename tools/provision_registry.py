"""Create the durable seed registry table (seed_registry_entries).

Usage:
    python tools/provision_registry.py [path/to/registry.db]

Defaults to SEEDBANK_REGISTRY_PATH.
"""
import sys
from pathlib import Path

from seedbank.core.config import get_config
from seedbank.core.registry.backends.sqlite import TABLE_NAME, connect, provision

if __name__ == "__main__":
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else get_config().registry_path
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = connect(path)
    try:
        provision(conn)
    finally:
        conn.close()
    print(f"{TABLE_NAME} provisioned in {path}")
