# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real keys or access tokens. Put them in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "SDWF_APP_NAME": "App display name (default: sd-workflow).",
    "SDWF_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Remote backing store
    "SDWF_SUPABASE_URL": "Supabase project URL (SUPABASE_URL is read too). Enables remote mode.",
    "SDWF_SUPABASE_ANON_KEY": "Supabase anon key (SUPABASE_ANON_KEY is read too).",
    "SDWF_ACCESS_TOKEN": "User access token (JWT). Without it, remote writes report AuthRequired.",
    "SDWF_USER_ID": "Remote user id for the session (informational).",
    # Sync (without a Supabase URL + key the offline SQLite store is used)
    "SDWF_POLL_INTERVAL_SECONDS": "Remote poll interval (default: 2.0).",
    "SDWF_REQUEST_TIMEOUT_SECONDS": "HTTP read timeout for the remote store (default: 10.0).",
    # Paths (gitignored)
    "SDWF_DATA_DIR": "Local data directory, also holds sd_workflow.log (default: .local/sd_workflow).",
    "SDWF_SNAPSHOT_DB_PATH": "Offline snapshot SQLite path (default: <data_dir>/snapshots.sqlite3).",
    "SDWF_SEED_EXAMPLE": "Seed one example task into an empty offline store (default: true).",
    # Console
    "SDWF_CURRENT_USER": "Acting user name at startup (change with /whoami).",
}
