import glob
import os
import sys

import psycopg2
from dotenv import load_dotenv

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "supabase", "migrations")


def run_migrations() -> int:
    """
    按文件名顺序执行 supabase/migrations/*.sql。

    中文注释: 连接串只从 DATABASE_URL 读取，不在仓库里写死任何凭据。
    """
    load_dotenv()
    dsn = (os.environ.get("DATABASE_URL") or "").strip()
    if not dsn:
        print("DATABASE_URL is not set", file=sys.stderr)
        return 2

    files = sorted(glob.glob(os.path.join(MIGRATIONS_DIR, "*.sql")))
    if not files:
        print(f"No migrations found in {MIGRATIONS_DIR}", file=sys.stderr)
        return 1

    print("Connecting to database...")
    conn = psycopg2.connect(dsn)
    conn.autocommit = True
    try:
        with conn.cursor() as cur:
            for path in files:
                print(f"Applying {os.path.basename(path)}")
                with open(path, "r", encoding="utf-8") as f:
                    cur.execute(f.read())
    except Exception as e:
        print(f"Migration failed: {e}", file=sys.stderr)
        return 1
    finally:
        conn.close()

    print("Database migration completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(run_migrations())
