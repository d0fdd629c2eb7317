import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.accounts import AccountService
from app.config import load_settings
from app.database import Database
from app.errors import TaskManagerError
from app.security import TokenService


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a task management user")
    parser.add_argument("username", help="Display name for the user (min 3 characters)")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to a YAML settings file (defaults to TASKS_CONFIG or config/settings.yaml)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < 6:
            print("Password must be at least 6 characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    settings = load_settings(Path(args.config_path) if args.config_path else None)
    password = prompt_for_password()

    database = Database(settings.database_path)
    database.initialize()
    accounts = AccountService(database, TokenService(settings.secret_key, ttl=settings.token_ttl))

    try:
        user, token = accounts.register(args.username, args.email, password)
    except TaskManagerError as exc:  # duplicates, invalid input
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    print(f"Created user {user.id}: {user.username} <{user.email}>")
    print(f"Access token: {token}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
